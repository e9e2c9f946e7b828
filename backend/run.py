import os

from color_namer import create_app, socketio

app = create_app()

if __name__ == '__main__':
    socketio.run(app, debug=True, port=int(os.environ.get('PORT', '5000')))
