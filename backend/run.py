from whisperduel import create_app, socketio, shutdown_app

app = create_app()

if __name__ == '__main__':
    try:
        # Use SocketIO server to enable websockets in dev
        socketio.run(app, port=app.config['PORT'], debug=True)
    finally:
        shutdown_app(app)
