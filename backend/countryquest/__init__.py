from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config
from countryquest.services.games.coordinator import GameCoordinator
from countryquest.transport import NAMESPACE

socketio = SocketIO(async_mode=None)
game = GameCoordinator()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    origins = flask_app.config.get('CORS_ORIGINS', '*')
    CORS(flask_app, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(
        flask_app,
        cors_allowed_origins=origins,
        ping_interval=flask_app.config.get('PING_INTERVAL_SEC', 10),
        ping_timeout=flask_app.config.get('PING_TIMEOUT_SEC', 10),
    )
    game.init_app(flask_app, socketio, namespace=NAMESPACE)

    # Import and register blueprints here
    from countryquest.main import main
    flask_app.register_blueprint(main)

    # Register Socket.IO event handlers
    from countryquest.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('catalog-stats')
    def catalog_stats_command():
        """Prints catalog size per region and the clue reveal order."""
        catalog = game.catalog
        click.echo(f"{len(catalog)} entities")
        for region in catalog.regions():
            click.echo(f"  {region}: {len(catalog.select([region]))}")
        from countryquest.models import CLUE_MASTER
        click.echo('Clue order: ' + ', '.join(d.key for d in CLUE_MASTER))

    flask_app.cli.add_command(catalog_stats_command)

    return flask_app
