from app.rotinas import create_app

app = create_app()
