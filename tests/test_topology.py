"""
Tests for node list bootstrap
"""
from node.topology import load_topology, read_topology


NODE_LIST = """\
# id,lat,lon
node_0,37.77,-122.42

node_1, 51.5 , -0.12
node_2,not-a-number,3.0
node_3,1.0
node_0,0.0,0.0
"""


def test_read_topology(tmp_path):
    path = tmp_path / "nodes.txt"
    path.write_text(NODE_LIST)
    messages = list(read_topology(str(path)))
    assert messages == [
        {"Node": {"id": "node_0", "lat": 37.77, "lon": -122.42}},
        {"Node": {"id": "node_1", "lat": 51.5, "lon": -0.12}},
        {"Node": {"id": "node_0", "lat": 0.0, "lon": 0.0}},
    ]


def test_load_topology(tmp_path, processor, store):
    path = tmp_path / "nodes.txt"
    path.write_text(NODE_LIST)
    added = load_topology(str(path), processor)
    assert added == ["node_0", "node_1"]
    assert store.get_node("node_0").lat == 37.77
    assert store.anomaly_count("duplicate_node") == 1
