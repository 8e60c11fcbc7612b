import logging
from typing import Any, Dict, Optional

from archgraph.exceptions import ExecutionLimitExceededError

logger = logging.getLogger(__name__)

MAX_BINDING_ACCESSES = 1_000_000


class AccessCounter:
    """Counts reads and writes against a fixed ceiling"""

    def __init__(self, limit: int = MAX_BINDING_ACCESSES):
        self.limit = limit
        self.count = 0

    def tick(self):
        self.count += 1
        if self.count > self.limit:
            logger.warning(f"Access limit {self.limit} exceeded")
            raise ExecutionLimitExceededError(limit=self.limit)


class NodeBinding:
    """
    The only object a Function node's script can touch.

    Reads come from the node's resolved inputs unless the script has already
    written the same name; writes are recorded as outputs. Every read and
    write is charged to the access counter.
    """

    def __init__(self, inputs: Dict[str, Any], counter: Optional[AccessCounter] = None):
        self._inputs = dict(inputs)
        self._outputs = {}
        self._counter = counter or AccessCounter()

    def get(self, name: str) -> Any:
        self._counter.tick()
        if name in self._outputs:
            return self._outputs[name]
        return self._inputs.get(name)

    def set(self, name: str, value: Any):
        self._counter.tick()
        self._outputs[name] = value

    @property
    def outputs(self) -> Dict[str, Any]:
        return dict(self._outputs)

    @property
    def access_count(self) -> int:
        return self._counter.count
