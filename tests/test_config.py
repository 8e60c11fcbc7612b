"""Properties files and engine configuration."""

import json

import pytest

from archgraph.engine_config import EngineConfig
from archgraph.properties_configurator import PropertiesConfigurator


@pytest.fixture
def properties_file(tmp_path):
    path = tmp_path / 'application.properties'
    path.write_text(
        '# comment\n'
        '! also a comment\n'
        '\n'
        'app.name=Test Graphs\n'
        'server.port: ${TEST_ARCHGRAPH_PORT:6001}\n'
        'server.debug=yes\n'
        'execution.step_delay_ms=25\n'
        'sandbox.max_accesses=500\n'
        'definitions.folder=${TEST_ARCHGRAPH_HOME}/definitions\n'
        'base.dir=/srv\n'
        'data.dir=${base.dir}/data\n'
        'not a property line\n'
    )
    return str(path)


def test_reads_keys_and_skips_comments(properties_file, monkeypatch):
    monkeypatch.delenv('TEST_ARCHGRAPH_PORT', raising=False)
    monkeypatch.setenv('TEST_ARCHGRAPH_HOME', '/opt/archgraph')

    props = PropertiesConfigurator([properties_file])

    assert props.get('app.name') == 'Test Graphs'
    assert props.get_int('server.port') == 6001
    assert props.get_bool('server.debug') is True
    assert props.get('definitions.folder') == '/opt/archgraph/definitions'
    assert props.get('data.dir') == '/srv/data'
    assert props.get('not a property line') is None


def test_environment_overrides_default(properties_file, monkeypatch):
    monkeypatch.setenv('TEST_ARCHGRAPH_PORT', '7002')

    props = PropertiesConfigurator([properties_file])

    assert props.get_int('server.port') == 7002


def test_unresolved_placeholder_is_kept(properties_file, monkeypatch):
    monkeypatch.delenv('TEST_ARCHGRAPH_HOME', raising=False)

    props = PropertiesConfigurator([properties_file])

    assert props.get('definitions.folder') == '${TEST_ARCHGRAPH_HOME}/definitions'


def test_missing_file_is_skipped(tmp_path):
    props = PropertiesConfigurator([str(tmp_path / 'missing.properties')])

    assert props.properties == {}


def test_typed_getters_fall_back():
    props = PropertiesConfigurator()
    props.set('count', 'many')
    props.set('ratio', 0.5)

    assert props.get_int('count', 3) == 3
    assert props.get_int('absent', 4) == 4
    assert props.get_float('ratio') == 0.5
    assert props.get_float('count', 1.5) == 1.5
    assert props.get_bool('absent') is False


def test_get_values_by_pattern():
    props = PropertiesConfigurator()
    props.set('definition.2', 'b')
    props.set('definition.1', 'a')
    props.set('server.port', '1')

    assert props.get_values_by_pattern(r'^definition\.') == ['a', 'b']


def test_load_and_resolve_json_file_content(tmp_path, monkeypatch):
    monkeypatch.setenv('TEST_ARCHGRAPH_NAME', 'Pricing')
    path = tmp_path / 'definition.json'
    path.write_text(json.dumps({'id': 'p', 'name': '${TEST_ARCHGRAPH_NAME}'}))

    content = PropertiesConfigurator().load_and_resolve_json_file_content(str(path))

    assert content == {'id': 'p', 'name': 'Pricing'}


def test_engine_config_from_properties(properties_file, monkeypatch):
    monkeypatch.setenv('TEST_ARCHGRAPH_HOME', '/opt/archgraph')

    config = EngineConfig.from_properties(PropertiesConfigurator([properties_file]))

    assert config.step_delay_ms == 25
    assert config.step_delay_seconds == pytest.approx(0.025)
    assert config.max_accesses == 500
    assert config.max_recursion_depth == 50
    assert config.max_loop_iterations == 1_000_000
    assert config.definitions_folder == '/opt/archgraph/definitions'


def test_engine_config_defaults():
    config = EngineConfig.from_properties(PropertiesConfigurator())

    assert config == EngineConfig()
    assert config.step_delay_seconds == pytest.approx(0.4)
    assert config.max_accesses == 1_000_000
