from app.samaj import create_app

app = create_app()
