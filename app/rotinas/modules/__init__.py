"""
Submitted modules (fuel logs, vehicle checklists, shift hand-offs).

Review pipeline:
- Drivers and firefighters create modules; every module starts AWAITING_SERGEANT
- Each reviewer role consumes exactly one status and produces the next
- Every transition stamps one attribution column and is recorded to the audit trail
"""
