"""Tests for the boto3-backed providers."""

import asyncio
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from stackur.engine.models import ChangeSetType
from stackur.providers.cloudformation import CloudFormationProvider, is_not_found
from stackur.providers.object_store import ObjectStore
from stackur.utils.errors import StackNotFoundError


def client_error(code, message, operation="DescribeStacks"):
    return ClientError({'Error': {'Code': code, 'Message': message}}, operation)


MISSING = client_error('ValidationError', 'Stack with id Test does not exist')


def paginated(client, *pages):
    client.get_paginator.return_value.paginate.return_value = list(pages)


class TestCloudFormationProvider:

    def test_is_not_found(self):
        assert is_not_found(MISSING)
        assert not is_not_found(client_error('ValidationError', 'Template format error'))
        assert not is_not_found(client_error('AccessDenied', 'Stack does not exist'))

    def test_missing_stack_raises_not_found(self):
        client = MagicMock()
        client.describe_stacks.side_effect = MISSING

        with pytest.raises(StackNotFoundError):
            asyncio.run(CloudFormationProvider(client).describe_stack("Test"))

    def test_other_errors_propagate(self):
        client = MagicMock()
        client.describe_stacks.side_effect = client_error('Throttling', 'Rate exceeded')

        with pytest.raises(ClientError):
            asyncio.run(CloudFormationProvider(client).describe_stack("Test"))

    def test_describe_stack(self):
        client = MagicMock()
        client.describe_stacks.return_value = {'Stacks': [{'StackName': 'Test', 'StackStatus': 'CREATE_COMPLETE'}]}

        stack = asyncio.run(CloudFormationProvider(client).describe_stack("Test"))

        assert stack['StackStatus'] == 'CREATE_COMPLETE'
        client.describe_stacks.assert_called_once_with(StackName="Test")

    @pytest.mark.parametrize("body", [
        '{"Resources": {"Site": {"Type": "AWS::S3::Bucket"}}}',
        {"Resources": {"Site": {"Type": "AWS::S3::Bucket"}}},
    ])
    def test_get_template_accepts_string_or_decoded_body(self, body):
        client = MagicMock()
        client.get_template.return_value = {'TemplateBody': body}

        template = asyncio.run(CloudFormationProvider(client).get_template("Test"))

        assert template == {"Resources": {"Site": {"Type": "AWS::S3::Bucket"}}}

    def test_list_physical_ids_skips_resources_without_one(self):
        client = MagicMock()
        paginated(
            client,
            {'StackResourceSummaries': [{'LogicalResourceId': 'Site', 'PhysicalResourceId': 'site-1'}]},
            {'StackResourceSummaries': [{'LogicalResourceId': 'Api', 'PhysicalResourceId': ''}]},
        )

        pairs = asyncio.run(CloudFormationProvider(client).list_physical_ids("Test"))

        assert pairs == [('Site', 'site-1')]
        client.get_paginator.assert_called_once_with('list_stack_resources')

    def test_create_change_set(self):
        client = MagicMock()

        asyncio.run(CloudFormationProvider(client).create_change_set(
            "Test", "ci-1", ChangeSetType.CREATE, "{}", capabilities=["CAPABILITY_IAM"]
        ))

        client.create_change_set.assert_called_once_with(
            StackName="Test",
            ChangeSetName="ci-1",
            ChangeSetType="CREATE",
            TemplateBody="{}",
            Capabilities=["CAPABILITY_IAM"],
        )

    def test_describe_change_set_follows_pages(self):
        client = MagicMock()
        change = {'ResourceChange': {'Action': 'Add', 'LogicalResourceId': 'Site',
                                     'ResourceType': 'AWS::S3::Bucket'}}
        client.describe_change_set.side_effect = [
            {'Status': 'CREATE_COMPLETE', 'ExecutionStatus': 'AVAILABLE', 'Changes': [change], 'NextToken': 't'},
            {'Status': 'CREATE_COMPLETE', 'ExecutionStatus': 'AVAILABLE', 'Changes': [change]},
        ]

        change_set = asyncio.run(CloudFormationProvider(client).describe_change_set("Test", "ci-1"))

        assert change_set.is_executable()
        assert len(change_set.changes) == 2
        assert client.describe_change_set.call_args_list[1].kwargs['NextToken'] == 't'

    def test_list_events_keeps_newest_first(self):
        client = MagicMock()
        paginated(client, {'StackEvents': [
            {'EventId': '2', 'LogicalResourceId': 'Test', 'ResourceType': 'AWS::CloudFormation::Stack',
             'ResourceStatus': 'CREATE_COMPLETE'},
            {'EventId': '1', 'LogicalResourceId': 'Test', 'ResourceType': 'AWS::CloudFormation::Stack',
             'ResourceStatus': 'CREATE_IN_PROGRESS'},
        ]})

        events = asyncio.run(CloudFormationProvider(client).list_events("Test"))

        assert [event.event_id for event in events] == ['2', '1']
        assert events[0].is_stack_terminal("Test")

    def test_list_events_for_missing_stack(self):
        client = MagicMock()
        client.get_paginator.return_value.paginate.side_effect = MISSING

        with pytest.raises(StackNotFoundError):
            asyncio.run(CloudFormationProvider(client).list_events("Test"))


class TestObjectStore:

    def test_list_objects_across_pages(self):
        client = MagicMock()
        paginated(client, {'Contents': [{'Key': 'a'}, {'Key': 'b'}]}, {'Contents': [{'Key': 'c'}]}, {})

        keys = asyncio.run(ObjectStore(client).list_objects("site"))

        assert keys == ['a', 'b', 'c']

    def test_missing_bucket_has_no_objects(self):
        client = MagicMock()
        client.get_paginator.return_value.paginate.side_effect = client_error('NoSuchBucket', 'gone')

        assert asyncio.run(ObjectStore(client).list_objects("site")) == []

    def test_delete_bucket_ignores_missing_bucket(self):
        client = MagicMock()
        client.delete_bucket.side_effect = client_error('NoSuchBucket', 'gone')

        asyncio.run(ObjectStore(client).delete_bucket("site"))

    def test_delete_bucket_propagates_other_errors(self):
        client = MagicMock()
        client.delete_bucket.side_effect = client_error('BucketNotEmpty', 'still has objects')

        with pytest.raises(ClientError):
            asyncio.run(ObjectStore(client).delete_bucket("site"))

    def test_delete_object(self):
        client = MagicMock()

        asyncio.run(ObjectStore(client).delete_object("site", "index.html"))

        client.delete_object.assert_called_once_with(Bucket="site", Key="index.html")
