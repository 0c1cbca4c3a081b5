"""
BuildTrack
Template Blueprint — read-only catalogues: project-type templates and LEED credits.

Endpoints:
    GET /api/v1/templates                     — All templates
    GET /api/v1/templates/<project_type>      — One template
    GET /api/v1/leed/subcategories            — LEED credits (filter: category)
    GET /api/v1/leed/subcategories/<id>       — One LEED credit
"""

from flask import Blueprint, jsonify, request

from buildtrack.services.leed_points import get_leed_catalog
from buildtrack.services.project_templates import get_project_template, list_project_templates
from buildtrack.utils.errors import E, api_error

template_bp = Blueprint("template", __name__, url_prefix="/api/v1")


@template_bp.route("/templates", methods=["GET"])
def list_templates():
    templates = list_project_templates()
    return jsonify({"items": [t.to_dict() for t in templates], "total": len(templates)}), 200


@template_bp.route("/templates/<string:project_type>", methods=["GET"])
def get_template(project_type):
    template = get_project_template(project_type)
    if template is None:
        return api_error(E.NOT_FOUND, f"No template for project type '{project_type}'")
    return jsonify(template.to_dict()), 200


@template_bp.route("/leed/subcategories", methods=["GET"])
def list_leed_subcategories():
    catalog = get_leed_catalog()
    category = request.args.get("category")
    items = catalog.by_category(category) if category else list(catalog.subcategories.values())
    return jsonify({
        "items": [s.to_dict() for s in items],
        "total": len(items),
        "max_points": sum(s.max_score for s in items),
    }), 200


@template_bp.route("/leed/subcategories/<string:subcategory_id>", methods=["GET"])
def get_leed_subcategory(subcategory_id):
    subcategory = get_leed_catalog().get(subcategory_id)
    if subcategory is None:
        return api_error(E.NOT_FOUND, f"Unknown LEED subcategory '{subcategory_id}'")
    return jsonify(subcategory.to_dict()), 200
