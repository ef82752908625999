from pushtrello import create_app

app = create_app()

# gunicorn wsgi:app
# Set RUN_SCHEDULER on exactly one process (or run `python -m pushtrello.worker`)
