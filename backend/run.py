from lobby import create_app, socketio
from lobby.services.reaper import reaper

app = create_app()

if __name__ == '__main__':
    # The reaper needs the store, so it starts only once the app is configured
    reaper.start(app)
    try:
        socketio.run(app, host='0.0.0.0', port=app.config['PORT'],
                     debug=app.config['APP_ENV'] != 'production', use_reloader=False)
    finally:
        reaper.stop()
