from flask import Blueprint, jsonify

from typerace.rooms import ROOMS

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the typerace server!'})

@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'rooms': len(ROOMS)})
