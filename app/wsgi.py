from app.schoolpanel import create_app

app = create_app()
