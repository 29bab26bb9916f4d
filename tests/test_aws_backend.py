"""Tests for the AWS backend, against stubbed botocore clients."""

import boto3
from botocore.stub import Stubber
import pytest

from lambdeploy.serverless.backends import aws_backend
from lambdeploy.serverless.exceptions import ControlPlaneError
from lambdeploy.serverless.exceptions import ResourceNotFoundError

FUNCTION_ARN = 'arn:aws:lambda:us-east-1:123456789012:function:f'


@pytest.fixture
def client(config):
    session = boto3.session.Session(aws_access_key_id='testing',
                                    aws_secret_access_key='testing',
                                    region_name='us-east-1')
    return aws_backend.AWSControlPlaneClient(config, session=session)


@pytest.fixture
def gateway(client):
    with Stubber(client.gateway_client) as stubber:
        yield stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def lambda_(client):
    with Stubber(client.lambda_client) as stubber:
        yield stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def events(client):
    with Stubber(client.events_client) as stubber:
        yield stubber
        stubber.assert_no_pending_responses()


class TestLookups:

    def test_missing_method_is_none(self, client, gateway):
        gateway.add_client_error('get_method',
                                 service_error_code='NotFoundException',
                                 http_status_code=404)
        assert client.get_method('api1', 'res1', 'GET') is None

    def test_other_errors_raise(self, client, gateway):
        gateway.add_client_error('get_method',
                                 service_error_code='TooManyRequestsException',
                                 http_status_code=429)
        with pytest.raises(ControlPlaneError) as excinfo:
            client.get_method('api1', 'res1', 'GET')
        assert excinfo.value.code == 'TooManyRequestsException'
        assert excinfo.value.operation == 'get_method'
        assert not isinstance(excinfo.value, ResourceNotFoundError)

    def test_existing_method_returned(self, client, gateway):
        gateway.add_response(
            'get_method', {
                'httpMethod': 'GET',
                'authorizationType': 'NONE'
            }, {
                'restApiId': 'api1',
                'resourceId': 'res1',
                'httpMethod': 'GET'
            })
        assert client.get_method('api1', 'res1', 'GET')['httpMethod'] == 'GET'

    def test_missing_function_is_none(self, client, lambda_):
        lambda_.add_client_error('get_function',
                                 service_error_code='ResourceNotFoundException',
                                 http_status_code=404)
        assert client.get_function('dev-Geddit-Quotes') is None


class TestGateway:

    def test_list_containers_follows_pages(self, client, gateway):
        gateway.add_response('get_rest_apis', {
            'items': [{
                'id': 'a1',
                'name': 'One'
            }],
            'position': 'p2'
        }, {})
        gateway.add_response('get_rest_apis',
                             {'items': [{
                                 'id': 'a2',
                                 'name': 'Two'
                             }]}, {'position': 'p2'})
        assert [c.id for c in client.list_containers()] == ['a1', 'a2']

    def test_put_method_without_authorization(self, client, gateway):
        gateway.add_response(
            'put_method', {'httpMethod': 'GET'}, {
                'restApiId': 'api1',
                'resourceId': 'res1',
                'httpMethod': 'GET',
                'authorizationType': 'NONE',
                'requestParameters': {},
            })
        client.put_method('api1', 'res1', 'GET')

    def test_resources_without_path_are_skipped(self, client, gateway):
        items = [
            {
                'id': 'root',
                'path': '/'
            },
            {
                'id': 'r2',
                'path': '/quote'
            },
            {
                'id': 'r3'
            },
        ]
        gateway.add_response('get_resources', {'items': items},
                             {'restApiId': 'api1'})
        paths = [n.path for n in client.list_resources('api1')]
        assert paths == ['/', '/quote']


class TestLambdaAndEvents:

    def test_absent_statement_is_not_found(self, client, lambda_):
        lambda_.add_client_error('remove_permission',
                                 service_error_code='ResourceNotFoundException',
                                 http_status_code=404)
        with pytest.raises(ResourceNotFoundError):
            client.remove_permission('dev-Geddit-Quotes', 'dev-api')

    def test_put_rule_returns_arn(self, client, events):
        arn = 'arn:aws:events:us-east-1:123456789012:rule/tick'
        events.add_response(
            'put_rule', {'RuleArn': arn}, {
                'Name': 'tick',
                'ScheduleExpression': 'rate(1 minute)',
                'Description': ''
            })
        assert client.put_rule('tick', 'rate(1 minute)', '') == arn

    def test_failed_target_entry_raises(self, client, events):
        events.add_response(
            'put_targets', {
                'FailedEntryCount': 1,
                'FailedEntries': [{
                    'TargetId': 'tick',
                    'ErrorCode': 'Limit',
                    'ErrorMessage': 'too many'
                }],
            })
        with pytest.raises(ControlPlaneError, match='put_targets failed'):
            client.put_target('tick', 'tick', FUNCTION_ARN)
