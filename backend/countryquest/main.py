from flask import Blueprint, jsonify

from countryquest.transport import NAMESPACE

main = Blueprint('main', __name__)


@main.route('/health')
def health():
    return 'OK', 200


@main.route('/')
def index():
    from countryquest import game
    return jsonify({
        'message': 'Country Quest game server',
        'status': 'running',
        'socket': True,
        'namespace': NAMESPACE,
        'sessions': len(game.registry),
    })
