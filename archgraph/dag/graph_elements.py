import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class NodeKind(Enum):
    """Kinds of node an ArchGraph definition can hold"""
    INPUT = 'input'
    OUTPUT = 'output'
    CONSTANT = 'constant'
    FUNCTION = 'function'
    GRAPH_REFERENCE = 'graph_reference'


# Type tags written by the graph editor
EDITOR_TYPE_TAGS = {
    'archInput': NodeKind.INPUT,
    'archOutput': NodeKind.OUTPUT,
    'archConstant': NodeKind.CONSTANT,
    'archFunction': NodeKind.FUNCTION,
    'customNodeReference': NodeKind.GRAPH_REFERENCE,
}

DEFAULT_LABELS = {
    NodeKind.INPUT: 'input',
    NodeKind.OUTPUT: 'output',
    NodeKind.CONSTANT: 'constant',
    NodeKind.FUNCTION: 'output',
}


def parse_node_kind(value) -> Union[NodeKind, str]:
    """Map a kind or editor tag to NodeKind; unknown tags are returned unchanged"""
    if isinstance(value, NodeKind):
        return value
    if value in EDITOR_TYPE_TAGS:
        return EDITOR_TYPE_TAGS[value]
    try:
        return NodeKind(value)
    except ValueError:
        logger.warning(f"Unrecognised node kind: {value}")
        return value


@dataclass(frozen=True)
class NodeRecord:
    """One computation unit of a definition"""
    id: str
    kind: Union[NodeKind, str]
    data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> Optional[str]:
        return self.data.get('label')

    @property
    def display_label(self) -> str:
        """Label for messages; falls back to the node id"""
        label = self.label
        return label if label is not None else self.id

    @property
    def test_values(self) -> Dict[str, Any]:
        return dict(self.data.get('testValues') or {})

    @property
    def script(self) -> str:
        return self.data.get('script') or ''

    @property
    def output_ports(self) -> Tuple[str, ...]:
        return tuple(self.data.get('outputPorts') or ())

    @property
    def value(self):
        return self.data.get('value')

    @property
    def value_type(self) -> str:
        return self.data.get('valueType') or 'string'

    @property
    def definition_id(self) -> Optional[str]:
        return self.data.get('definitionId')

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'NodeRecord':
        kind = config.get('kind', config.get('type'))
        return cls(
            id=str(config['id']),
            kind=parse_node_kind(kind),
            data=copy.deepcopy(dict(config.get('data') or {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        kind = self.kind.value if isinstance(self.kind, NodeKind) else self.kind
        return {'id': self.id, 'kind': kind, 'data': copy.deepcopy(dict(self.data))}


@dataclass(frozen=True)
class EdgeRecord:
    """A directed connection carrying one value"""
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    id: Optional[str] = None

    @property
    def name(self) -> str:
        return self.id or f"{self.source}_to_{self.target}"

    @property
    def source_key(self) -> str:
        """Key this edge's source resolves under; the handle when one is set"""
        return self.source_handle or self.source

    @property
    def value_key(self) -> str:
        """Key of the value this edge carries in a session's edge values"""
        if self.source_handle:
            return f"{self.source}:{self.source_handle}"
        return self.source

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'EdgeRecord':
        return cls(
            source=str(config['source']),
            target=str(config['target']),
            source_handle=config.get('sourceHandle'),
            target_handle=config.get('targetHandle'),
            id=config.get('id'),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {'source': self.source, 'target': self.target}
        if self.id is not None:
            result['id'] = self.id
        if self.source_handle is not None:
            result['sourceHandle'] = self.source_handle
        if self.target_handle is not None:
            result['targetHandle'] = self.target_handle
        return result


@dataclass(frozen=True)
class GraphDefinition:
    """A named graph of nodes and edges, executable or referenced as a sub-node"""
    id: str
    name: str
    nodes: Tuple[NodeRecord, ...] = ()
    edges: Tuple[EdgeRecord, ...] = ()
    directory_id: Optional[str] = None

    def __post_init__(self):
        # Lists handed in by callers are frozen into tuples
        object.__setattr__(self, 'nodes', tuple(self.nodes))
        object.__setattr__(self, 'edges', tuple(self.edges))
        ids = [node.id for node in self.nodes]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Definition {self.name} has duplicate node ids")

    @property
    def node_ids(self):
        return [node.id for node in self.nodes]

    def get_node(self, node_id) -> Optional[NodeRecord]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def valid_edges(self):
        """Edges whose endpoints both exist; dangling edges are ignored"""
        ids = set(self.node_ids)
        return [e for e in self.edges if e.source in ids and e.target in ids]

    def incoming_edges(self, node_id):
        return [e for e in self.valid_edges() if e.target == node_id]

    def outgoing_edges(self, node_id):
        return [e for e in self.valid_edges() if e.source == node_id]

    def nodes_of_kind(self, kind: NodeKind):
        return [node for node in self.nodes if node.kind == kind]

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'GraphDefinition':
        return cls(
            id=str(config['id']),
            name=config.get('name', ''),
            nodes=tuple(NodeRecord.from_dict(n) for n in config.get('nodes', [])),
            edges=tuple(EdgeRecord.from_dict(e) for e in config.get('edges', [])),
            directory_id=config.get('directoryId'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'directoryId': self.directory_id,
            'nodes': [node.to_dict() for node in self.nodes],
            'edges': [edge.to_dict() for edge in self.edges],
        }


class NodeStatus(Enum):
    """Execution status of one node within a session"""
    PENDING = 'pending'
    EXECUTING = 'executing'
    COMPLETED = 'completed'
    ERROR = 'error'


_ALLOWED_TRANSITIONS = {
    NodeStatus.PENDING: {NodeStatus.EXECUTING},
    NodeStatus.EXECUTING: {NodeStatus.COMPLETED, NodeStatus.ERROR},
    NodeStatus.COMPLETED: set(),
    NodeStatus.ERROR: set(),
}


def json_safe(value):
    """Copy of a value that JSON encoding accepts; unknown objects become their repr"""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dict):
        return {key if isinstance(key, str) else str(key): json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, range)):
        return [json_safe(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((json_safe(item) for item in value), key=repr)
    return repr(value)


@dataclass
class NodeResult:
    """Result of one node within a session; status only moves forward"""
    status: NodeStatus = NodeStatus.PENDING
    input_values: Dict[str, Any] = field(default_factory=dict)
    output_values: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def _advance(self, status: NodeStatus):
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"Illegal node status transition {self.status.value} -> {status.value}")
        self.status = status

    def mark_executing(self, input_values: Dict[str, Any]):
        self._advance(NodeStatus.EXECUTING)
        self.input_values = dict(input_values)

    def mark_completed(self, output_values: Dict[str, Any]):
        self._advance(NodeStatus.COMPLETED)
        self.output_values = dict(output_values)

    def mark_error(self, error: str, output_values: Dict[str, Any] = None):
        self._advance(NodeStatus.ERROR)
        self.output_values = dict(output_values or {})
        self.error = error

    def details(self) -> Dict[str, Any]:
        """Return node result details in JSON format"""
        result = {
            'status': self.status.value,
            'inputValues': json_safe(self.input_values),
            'outputValues': json_safe(self.output_values),
        }
        if self.error is not None:
            result['error'] = self.error
        return result
