from app.quietmap import create_app

app = create_app()
