"""Execution control routes module"""
import logging
from flask import jsonify

logger = logging.getLogger(__name__)


class ExecutionRoutes:
    """Handles run/step/pause/reset of the active definition"""

    def __init__(self, app, controller):
        self.app = app
        self.controller = controller
        self._register_routes()

    def _register_routes(self):
        """Register all execution routes"""
        self.app.add_url_rule('/execution/run', 'execution_run',
                             self.run_execution, methods=['POST'])
        self.app.add_url_rule('/execution/step', 'execution_step',
                             self.step_execution, methods=['POST'])
        self.app.add_url_rule('/execution/pause', 'execution_pause',
                             self.pause_execution, methods=['POST'])
        self.app.add_url_rule('/execution/reset', 'execution_reset',
                             self.reset_execution, methods=['POST'])
        self.app.add_url_rule('/execution/snapshot', 'execution_snapshot',
                             self.execution_snapshot, methods=['GET'])

    def _command(self, name, command):
        try:
            snapshot = command()
            logger.info(f"Execution {name}: state is {snapshot.state.value}")
            return jsonify(snapshot.to_dict())
        except Exception as e:
            logger.error(f"Error handling execution {name}: {str(e)}")
            return jsonify({'error': str(e)}), 500

    def run_execution(self):
        """Start or resume auto-advance"""
        return self._command('run', self.controller.run)

    def step_execution(self):
        """Execute exactly one node"""
        return self._command('step', self.controller.step)

    def pause_execution(self):
        """Pause a running session"""
        return self._command('pause', self.controller.pause)

    def reset_execution(self):
        """Discard the session"""
        return self._command('reset', self.controller.reset)

    def execution_snapshot(self):
        return jsonify(self.controller.snapshot().to_dict())
