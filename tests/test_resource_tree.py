"""Tests for the resource tree reconciler."""

import pytest

from lambdeploy.serverless import data_models
from lambdeploy.serverless import resource_tree
from lambdeploy.serverless.exceptions import ServerlessDeploymentError

CONTAINER = data_models.APIContainer(id='api1', name='Api')


class RecordingClient:
    """Only what ResourceTree needs: create_resource, recorded in order."""

    def __init__(self):
        self.created = []

    def create_resource(self, container_id, parent_id, path_part):
        self.created.append((parent_id, path_part))
        return data_models.ResourceNode(path=f'?{path_part}',
                                        id=f'id-{path_part}')


def synthetic_tree(client, *paths):
    nodes = {'/': data_models.ResourceNode(path='/', id='root')}
    for path in paths:
        nodes[path] = data_models.ResourceNode(path=path, id=f'id{path}')
    return resource_tree.ResourceTree(client, CONTAINER, nodes)


class TestUpsertPath:

    def test_parents_created_before_children(self):
        """Upserting /a/b/c creates /a, /a/b, /a/b/c in that order."""
        client = RecordingClient()
        tree = synthetic_tree(client)
        node = tree.upsert_path('/a/b/c')
        assert client.created == [('root', 'a'), ('id-a', 'b'),
                                  ('id-b', 'c')]
        assert node.id == 'id-c'
        assert set(tree.nodes) == {'/', '/a', '/a/b', '/a/b/c'}

    def test_nodes_keyed_by_requested_path(self):
        """The map uses the full path whatever form the remote echoes."""
        client = RecordingClient()
        tree = synthetic_tree(client)
        tree.upsert_path('/a')
        assert tree.nodes['/a'].path == '/a'

    def test_existing_path_is_not_recreated(self):
        client = RecordingClient()
        tree = synthetic_tree(client, '/a', '/a/b')
        node = tree.upsert_path('/a/b')
        assert client.created == []
        assert node.id == 'id/a/b'

    def test_only_missing_segments_created(self):
        """Existing ancestors are reused."""
        client = RecordingClient()
        tree = synthetic_tree(client, '/a')
        tree.upsert_path('/a/b/c')
        assert client.created == [('id/a', 'b'), ('id-b', 'c')]

    def test_second_upsert_is_a_no_op(self):
        client = RecordingClient()
        tree = synthetic_tree(client)
        tree.upsert_path('/quote/{quoteId}')
        tree.upsert_path('/quote/{quoteId}')
        assert len(client.created) == 2

    def test_path_is_normalized(self):
        client = RecordingClient()
        tree = synthetic_tree(client)
        tree.upsert_path('quote/')
        assert '/quote' in tree.nodes
        assert tree.get('quote') is tree.nodes['/quote']

    def test_root_returns_existing_root(self):
        client = RecordingClient()
        tree = synthetic_tree(client)
        assert tree.upsert_path('/').id == 'root'
        assert client.created == []

    def test_missing_root_raises(self):
        tree = resource_tree.ResourceTree(RecordingClient(), CONTAINER, {})
        with pytest.raises(ServerlessDeploymentError,
                           match='no root resource'):
            tree.upsert_path('/a')


class TestResolveContainer:

    def test_creates_missing_container(self, fake):
        container, tree = resource_tree.resolve_container(fake, 'Api')
        assert container.name == 'Api'
        assert fake.count('create_container') == 1
        assert set(tree.nodes) == {'/'}

    def test_reuses_container_with_exact_name(self, fake):
        """Matching is by exact name; near-misses are ignored."""
        fake.create_container('Api-old')
        existing = fake.create_container('Api')
        fake.calls.clear()
        container, _ = resource_tree.resolve_container(fake, 'Api')
        assert container == existing
        assert fake.count('create_container') == 0

    def test_loads_existing_resources(self, fake):
        existing = fake.create_container('Api')
        fake.create_resource(existing.id, 'root', 'quote')
        _, tree = resource_tree.resolve_container(fake, 'Api')
        assert set(tree.nodes) == {'/', '/quote'}
        assert tree.container == existing
