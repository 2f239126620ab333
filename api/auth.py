from flask import Blueprint, request, jsonify, current_app
from models import User, db
from helpers import is_valid_email, is_valid_password, generate_access_token, get_current_user, is_authenticated

bp = Blueprint('auth', __name__)

@bp.route('/api/auth/register', methods=["POST"])
def register():
    """
    Registers a new user with email and password.

    Returns:
        Response: 201 with the user and an access token, or 400 when the email or password is
        missing or invalid, or the email is already registered.
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password")
    name = data.get("name")

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400
    if not is_valid_email(email):
        return jsonify({"error": "Invalid email format"}), 400
    if not is_valid_password(password):
        return jsonify({"error": "Password must be at least 8 characters long"}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "User with this email already exists"}), 400

    user = User(email=email, name=name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"Registered user {user.id}")
    return jsonify({
        "message": "User registered successfully",
        "user": user.to_dict(),
        "accessToken": generate_access_token(user)
    }), 201

@bp.route('/api/auth/login', methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return jsonify({"error": "Invalid email or password"}), 401
    return jsonify({
        "message": "Login successful",
        "user": user.to_dict(),
        "accessToken": generate_access_token(user)
    })

@bp.route('/api/auth/me', methods=["GET"])
@is_authenticated
def me():
    user = get_current_user()
    return jsonify({"user": user.to_dict()})
