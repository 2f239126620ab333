from flask import Blueprint, request, jsonify
from models import Project, db
from helpers import get_current_user, is_authenticated, get_owned_project

bp = Blueprint('projects', __name__)

@bp.route('/api/projects', methods=["POST"])
@is_authenticated
def create_project():
    """
    Creates a project for the current user.

    Returns:
        Response: 201 with the project, or 400 if no name is given. Genre defaults to "fantasy".
    """
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify({"error": "name is required"}), 400
    project = Project(
        user_id=user.id,
        name=name,
        description=data.get("description"),
        genre=data.get("genre") or "fantasy"
    )
    db.session.add(project)
    db.session.commit()
    return jsonify(project.to_dict()), 201

@bp.route('/api/projects', methods=["GET"])
@is_authenticated
def list_projects():
    user = get_current_user()
    projects = Project.query.filter_by(user_id=user.id).order_by(Project.updated_at.desc()).all()
    return jsonify([project.to_dict(include_books=True) for project in projects])

@bp.route('/api/projects/<int:project_id>', methods=["GET"])
@is_authenticated
def get_project(project_id):
    project = get_owned_project(project_id, get_current_user())
    return jsonify(project.to_dict(include_books=True))

@bp.route('/api/projects/<int:project_id>', methods=["PUT"])
@is_authenticated
def update_project(project_id):
    """
    Updates a project's name, description and/or genre. Fields that are absent are left as they are.
    """
    project = get_owned_project(project_id, get_current_user())
    data = request.get_json(silent=True) or {}
    if data.get("name"):
        project.name = data["name"]
    if "description" in data:
        project.description = data["description"]
    if data.get("genre"):
        project.genre = data["genre"]
    db.session.commit()
    return jsonify(project.to_dict())

@bp.route('/api/projects/<int:project_id>', methods=["DELETE"])
@is_authenticated
def delete_project(project_id):
    project = get_owned_project(project_id, get_current_user())
    db.session.delete(project)
    db.session.commit()
    return jsonify({"message": "Project deleted successfully"})
