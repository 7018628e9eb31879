from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from typerace.main import main
    flask_app.register_blueprint(main)

    from typerace.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Importing here ensures the handlers bind to the initialized socketio instance
    from typerace.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('simulate-race')
    @click.option('--players', default=2, show_default=True, help='Number of simulated players.')
    @click.option('--seed', default=0, show_default=True, help='Seed for the shared random stream.')
    @click.option('--theme', default='tech', show_default=True, help='Word bank to race on.')
    @click.option('--time-limit', default=30, show_default=True, help='Round length in seconds.')
    @click.option('--accuracy', default=0.8, show_default=True, help='Chance each submitted word is correct.')
    def simulate_race_command(players, seed, theme, time_limit, accuracy):
        """Run a scripted race on a logical runtime and print the leaderboard."""
        from typerace.simulate import simulate_race
        result = simulate_race(
            players=players, seed=seed, theme=theme,
            time_limit=time_limit, accuracy=accuracy,
        )
        click.echo(f"Race finished: {len(result['words'])} words, {result['time_limit']}s")
        for row in result['leaderboard']:
            click.echo(
                f"#{row['rank']} {row['initials'] or row['id']}: "
                f"score={row['score']} wpm={row['wpm']} progress={row['progress']}%"
            )
        for name, score in sorted(result['highscores'].items()):
            click.echo(f"highscore {name}={score}")

    flask_app.cli.add_command(simulate_race_command)

    return flask_app
