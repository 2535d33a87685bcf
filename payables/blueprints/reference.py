"""Reference data blueprint: suppliers, sites, inventory items, tax rates."""
from flask import Blueprint, jsonify

from payables.blueprints import json_body
from payables.database import get_session
from payables.services import reference_service

reference_bp = Blueprint('reference', __name__, url_prefix='/api')


@reference_bp.route('/suppliers', methods=['GET'])
def list_suppliers():
    return jsonify(reference_service.list_suppliers(get_session()))


@reference_bp.route('/suppliers', methods=['POST'])
def create_supplier():
    supplier = reference_service.create_supplier(json_body(), get_session())
    return jsonify(supplier.to_dict()), 201


@reference_bp.route('/suppliers/<int:supplier_id>/sites', methods=['GET'])
def list_supplier_sites(supplier_id):
    return jsonify(reference_service.list_supplier_sites(get_session(), supplier_id))


@reference_bp.route('/suppliers/<int:supplier_id>/sites', methods=['POST'])
def create_supplier_site(supplier_id):
    site = reference_service.create_supplier_site(supplier_id, json_body(), get_session())
    return jsonify(site.to_dict()), 201


@reference_bp.route('/inventory-items', methods=['GET'])
def list_inventory_items():
    return jsonify(reference_service.list_inventory_items(get_session()))


@reference_bp.route('/inventory-items', methods=['POST'])
def create_inventory_item():
    item = reference_service.create_inventory_item(json_body(), get_session())
    return jsonify(item.to_dict()), 201


@reference_bp.route('/tax-rates', methods=['GET'])
def list_tax_rates():
    return jsonify(reference_service.list_tax_rates(get_session()))


@reference_bp.route('/tax-rates', methods=['POST'])
def create_tax_rate():
    tax_rate = reference_service.create_tax_rate(json_body(), get_session())
    return jsonify(tax_rate.to_dict()), 201
