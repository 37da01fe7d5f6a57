from sellytics import create_app

app = create_app()
