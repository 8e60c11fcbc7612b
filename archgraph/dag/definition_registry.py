import glob
import json
import logging
import os
import threading
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from archgraph.core_utils import generate_random_uuid_string
from archgraph.dag.graph_elements import (
    EdgeRecord, GraphDefinition, NodeKind, NodeRecord
)

logger = logging.getLogger(__name__)

UNTITLED_NAME = 'Untitled Node'


class ChangeKind:
    DEFINITION_ADDED = 'definition_added'
    DEFINITION_REMOVED = 'definition_removed'
    DEFINITION_RENAMED = 'definition_renamed'
    ACTIVE_CHANGED = 'active_changed'
    STRUCTURE_CHANGED = 'structure_changed'


@dataclass(frozen=True)
class DefinitionChange:
    kind: str
    definition_id: Optional[str]


class DefinitionRegistry:
    """
    Holds every definition and tracks which one is active.

    Definitions are immutable; every edit replaces the stored definition with
    a new GraphDefinition. Listeners are notified after the registry lock is
    released, so a listener may call back into the registry.
    """

    def __init__(self, definitions=None):
        self._lock = threading.RLock()
        self._definitions: Dict[str, GraphDefinition] = {}
        self._active_id: Optional[str] = None
        self._listeners: List[Callable[[DefinitionChange], None]] = []

        for definition in definitions or []:
            self._definitions[definition.id] = definition
        if self._definitions:
            self._active_id = next(iter(self._definitions))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, definition_id) -> Optional[GraphDefinition]:
        with self._lock:
            return self._definitions.get(definition_id)

    def __contains__(self, definition_id):
        return self.get(definition_id) is not None

    def list_definitions(self) -> List[GraphDefinition]:
        with self._lock:
            return list(self._definitions.values())

    @property
    def active_definition_id(self) -> Optional[str]:
        with self._lock:
            return self._active_id

    @property
    def active_definition(self) -> Optional[GraphDefinition]:
        with self._lock:
            if self._active_id is None:
                return None
            return self._definitions.get(self._active_id)

    def get_input_output_nodes(self, definition_id):
        """Input and Output nodes of a definition, in node order"""
        definition = self.get(definition_id)
        if definition is None:
            return {'inputs': [], 'outputs': []}
        return {
            'inputs': definition.nodes_of_kind(NodeKind.INPUT),
            'outputs': definition.nodes_of_kind(NodeKind.OUTPUT),
        }

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Callable[[DefinitionChange], None]):
        """Register a change listener; returns a callable that unsubscribes it"""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changes: List[DefinitionChange]):
        with self._lock:
            listeners = list(self._listeners)
        for change in changes:
            for listener in listeners:
                try:
                    listener(change)
                except Exception as e:
                    logger.error(f"Definition change listener failed on {change}: {e}")

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def add_definition(self, name: str = None, definition: GraphDefinition = None) -> GraphDefinition:
        """
        Add a definition and make it active.

        Without a definition, an empty one is created; without a name it is
        called 'Untitled Node', then 'Untitled Node 2' and so on.
        """
        with self._lock:
            if definition is None:
                if not name:
                    untitled = [d for d in self._definitions.values() if d.name.startswith(UNTITLED_NAME)]
                    name = UNTITLED_NAME if not untitled else f"{UNTITLED_NAME} {len(untitled) + 1}"
                definition = GraphDefinition(id=generate_random_uuid_string(), name=name)
            elif definition.id in self._definitions:
                raise ValueError(f"Definition {definition.id} already exists")

            self._definitions[definition.id] = definition
            self._active_id = definition.id

        logger.info(f"Added definition {definition.name} ({definition.id})")
        self._notify([
            DefinitionChange(ChangeKind.DEFINITION_ADDED, definition.id),
            DefinitionChange(ChangeKind.ACTIVE_CHANGED, definition.id),
        ])
        return definition

    def remove_definition(self, definition_id) -> bool:
        changes = []
        with self._lock:
            if definition_id not in self._definitions:
                return False
            del self._definitions[definition_id]
            changes.append(DefinitionChange(ChangeKind.DEFINITION_REMOVED, definition_id))

            if self._active_id == definition_id:
                self._active_id = next(iter(self._definitions), None)
                changes.append(DefinitionChange(ChangeKind.ACTIVE_CHANGED, self._active_id))

        logger.info(f"Removed definition {definition_id}")
        self._notify(changes)
        return True

    def rename_definition(self, definition_id, name: str) -> GraphDefinition:
        with self._lock:
            definition = self._require(definition_id)
            renamed = replace(definition, name=name)
            self._definitions[definition_id] = renamed

        self._notify([DefinitionChange(ChangeKind.DEFINITION_RENAMED, definition_id)])
        return renamed

    def set_active_definition(self, definition_id):
        with self._lock:
            self._require(definition_id)
            if self._active_id == definition_id:
                return
            self._active_id = definition_id

        logger.info(f"Active definition is now {definition_id}")
        self._notify([DefinitionChange(ChangeKind.ACTIVE_CHANGED, definition_id)])

    def load_folder(self, folder_path: str) -> List[GraphDefinition]:
        """Load every *.json definition file in a folder; bad files are logged and skipped"""
        loaded = []
        if not os.path.isdir(folder_path):
            logger.warning(f"Definitions folder not found: {folder_path}")
            return loaded

        for file_path in sorted(glob.glob(os.path.join(folder_path, '*.json'))):
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    definition = GraphDefinition.from_dict(json.load(f))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error(f"Failed to load definition from {file_path}: {e}")
                continue

            with self._lock:
                self._definitions[definition.id] = definition
                if self._active_id is None:
                    self._active_id = definition.id
            loaded.append(definition)
            logger.info(f"Loaded definition {definition.name} from {file_path}")

        self._notify([DefinitionChange(ChangeKind.DEFINITION_ADDED, d.id) for d in loaded])
        return loaded

    # ------------------------------------------------------------------
    # Nodes and edges (default to the active definition)
    # ------------------------------------------------------------------

    def add_node(self, node: NodeRecord, definition_id=None) -> GraphDefinition:
        def edit(definition):
            return replace(definition, nodes=definition.nodes + (node,))
        return self._edit(definition_id, edit)

    def remove_node(self, node_id, definition_id=None) -> GraphDefinition:
        """
        Remove a node and its edges.

        Removing an Input or Output node also drops the edges that used its
        handle on GraphReference instances of this definition elsewhere.
        """
        changes = []
        with self._lock:
            definition = self._require(definition_id)
            removed = definition.get_node(node_id)
            if removed is None:
                return definition

            updated = replace(
                definition,
                nodes=tuple(n for n in definition.nodes if n.id != node_id),
                edges=tuple(e for e in definition.edges if e.source != node_id and e.target != node_id),
            )
            self._definitions[definition.id] = updated
            changes.append(DefinitionChange(ChangeKind.STRUCTURE_CHANGED, definition.id))

            removed_handle = None
            if removed.kind == NodeKind.INPUT:
                removed_handle = f"input-{node_id}"
            elif removed.kind == NodeKind.OUTPUT:
                removed_handle = f"output-{node_id}"

            if removed_handle:
                for other in list(self._definitions.values()):
                    if other.id == definition.id or not self._has_instances_of(other, definition.id):
                        continue
                    kept = tuple(
                        e for e in other.edges
                        if e.source_handle != removed_handle and e.target_handle != removed_handle
                    )
                    if len(kept) != len(other.edges):
                        self._definitions[other.id] = replace(other, edges=kept)
                        changes.append(DefinitionChange(ChangeKind.STRUCTURE_CHANGED, other.id))

        self._notify(changes)
        return updated

    def update_node_data(self, node_id, data: Dict, definition_id=None) -> GraphDefinition:
        """Merge data into a node's data"""
        def edit(definition):
            if definition.get_node(node_id) is None:
                raise KeyError(f"Node {node_id} not found in {definition.name}")
            nodes = tuple(
                replace(n, data={**n.data, **data}) if n.id == node_id else n
                for n in definition.nodes
            )
            return replace(definition, nodes=nodes)
        return self._edit(definition_id, edit)

    def connect(self, source, target, source_handle=None, target_handle=None,
                definition_id=None) -> GraphDefinition:
        """Add an edge; an identical connection is not added twice"""
        def edit(definition):
            for e in definition.edges:
                if (e.source, e.target, e.source_handle, e.target_handle) == \
                        (source, target, source_handle, target_handle):
                    return definition
            edge = EdgeRecord(
                source=source,
                target=target,
                source_handle=source_handle,
                target_handle=target_handle,
                id=f"edge__{source}{source_handle or ''}-{target}{target_handle or ''}",
            )
            return replace(definition, edges=definition.edges + (edge,))
        return self._edit(definition_id, edit)

    def remove_edge(self, edge_id, definition_id=None) -> GraphDefinition:
        def edit(definition):
            return replace(definition, edges=tuple(e for e in definition.edges if e.id != edge_id))
        return self._edit(definition_id, edit)

    def update_edge(self, edge_id, definition_id=None, **changes) -> GraphDefinition:
        """Replace fields (source, target, source_handle, target_handle) of an edge"""
        def edit(definition):
            if not any(e.id == edge_id for e in definition.edges):
                raise KeyError(f"Edge {edge_id} not found in {definition.name}")
            edges = tuple(replace(e, **changes) if e.id == edge_id else e for e in definition.edges)
            return replace(definition, edges=edges)
        return self._edit(definition_id, edit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, definition_id) -> GraphDefinition:
        if definition_id is None:
            definition_id = self._active_id
        if definition_id is None:
            raise KeyError("No active definition")
        definition = self._definitions.get(definition_id)
        if definition is None:
            raise KeyError(f"Definition {definition_id} not found")
        return definition

    def _edit(self, definition_id, edit) -> GraphDefinition:
        with self._lock:
            definition = self._require(definition_id)
            updated = edit(definition)
            if updated is definition:
                return definition
            self._definitions[definition.id] = updated

        self._notify([DefinitionChange(ChangeKind.STRUCTURE_CHANGED, updated.id)])
        return updated

    @staticmethod
    def _has_instances_of(definition, referenced_id) -> bool:
        return any(
            n.kind == NodeKind.GRAPH_REFERENCE and n.definition_id == referenced_id
            for n in definition.nodes
        )
