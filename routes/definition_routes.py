"""Definition management routes module"""
import logging
from flask import request, jsonify

from archgraph.dag.graph_elements import GraphDefinition

logger = logging.getLogger(__name__)


class DefinitionRoutes:
    """Handles listing, creating, activating and deleting definitions"""

    def __init__(self, app, registry):
        self.app = app
        self.registry = registry
        self._register_routes()

    def _register_routes(self):
        """Register all definition routes"""
        self.app.add_url_rule('/definitions', 'list_definitions',
                             self.list_definitions, methods=['GET'])
        self.app.add_url_rule('/definitions', 'create_definition',
                             self.create_definition, methods=['POST'])
        self.app.add_url_rule('/definitions/<definition_id>', 'get_definition',
                             self.get_definition, methods=['GET'])
        self.app.add_url_rule('/definitions/<definition_id>', 'delete_definition',
                             self.delete_definition, methods=['DELETE'])
        self.app.add_url_rule('/definitions/<definition_id>/activate', 'activate_definition',
                             self.activate_definition, methods=['POST'])

    def list_definitions(self):
        active_id = self.registry.active_definition_id
        return jsonify({
            'activeDefinitionId': active_id,
            'definitions': [
                {'id': d.id, 'name': d.name, 'nodeCount': len(d.nodes), 'edgeCount': len(d.edges)}
                for d in self.registry.list_definitions()
            ]
        })

    def get_definition(self, definition_id):
        definition = self.registry.get(definition_id)
        if definition is None:
            return jsonify({'error': 'Definition not found'}), 404
        return jsonify(definition.to_dict())

    def create_definition(self):
        """Create a definition from a JSON body, or an empty one from {"name": ...}"""
        body = request.get_json(silent=True)
        if body is None:
            body = {}
        if not isinstance(body, dict):
            return jsonify({'error': 'Expected a JSON object'}), 400

        try:
            if 'nodes' in body or 'edges' in body:
                definition = self.registry.add_definition(definition=GraphDefinition.from_dict(body))
            else:
                definition = self.registry.add_definition(name=body.get('name'))
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Error creating definition: {str(e)}")
            return jsonify({'error': f'Invalid definition: {str(e)}'}), 400

        return jsonify(definition.to_dict()), 201

    def activate_definition(self, definition_id):
        try:
            self.registry.set_active_definition(definition_id)
        except KeyError:
            return jsonify({'error': 'Definition not found'}), 404
        return jsonify({'success': True, 'activeDefinitionId': definition_id})

    def delete_definition(self, definition_id):
        if not self.registry.remove_definition(definition_id):
            return jsonify({'error': 'Definition not found'}), 404
        return jsonify({'success': True, 'activeDefinitionId': self.registry.active_definition_id})
