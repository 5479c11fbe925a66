"""Tests for the error taxonomy and AWS exception mapping."""

from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from cloud_actions.utils.errors import (
    ActionError,
    CredentialError,
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    Phase,
    RemoteQueryError,
    RemoteRejectionError,
    ValidationError,
)


def _client_error(code, message="boom", operation="CreateNatGateway", request_id="req-42"):
    return ClientError(
        {
            'Error': {'Code': code, 'Message': message},
            'ResponseMetadata': {'RequestId': request_id},
        },
        operation,
    )


class TestHandleException:

    def setup_method(self):
        self.handler = ErrorHandler()

    def test_action_error_passes_through(self):
        error = ValidationError("name is empty")

        assert self.handler.handle_exception(error) is error

    def test_client_error_during_mutation_is_rejection(self):
        error = self.handler.handle_exception(
            _client_error("NatGatewayLimitExceeded", "too many"),
            ErrorContext(guid="g-1", kind="nat_gateway"),
            Phase.MUTATION,
        )

        assert isinstance(error, RemoteRejectionError)
        assert error.category is ErrorCategory.REMOTE_REJECTION
        assert str(error) == "CreateNatGateway failed (NatGatewayLimitExceeded): too many"
        assert error.context.request_id == "req-42"
        assert error.context.aws_operation == "CreateNatGateway"
        assert error.context.guid == "g-1"
        assert "Request a service limit increase" in error.suggestions

    def test_client_error_during_query_is_query_error(self):
        error = self.handler.handle_exception(
            _client_error("Throttling", operation="DescribeVolumes"), phase=Phase.QUERY
        )

        assert isinstance(error, RemoteQueryError)
        assert error.suggestions == ["AWS Request ID: req-42"]

    def test_missing_credentials(self):
        error = self.handler.handle_exception(NoCredentialsError())

        assert isinstance(error, CredentialError)
        assert error.category is ErrorCategory.CREDENTIAL

    def test_network_error_follows_phase(self):
        cause = EndpointConnectionError(endpoint_url="https://ec2.eu-west-1.amazonaws.com")

        assert isinstance(self.handler.handle_exception(cause, phase=Phase.QUERY), RemoteQueryError)
        assert isinstance(self.handler.handle_exception(cause), RemoteRejectionError)

    def test_unknown_exception(self):
        error = self.handler.handle_exception(ValueError("bad"))

        assert type(error) is ActionError
        assert error.category is ErrorCategory.UNKNOWN
        assert str(error) == "ValueError: bad"


class TestActionError:

    def test_to_dict(self):
        error = RemoteRejectionError(
            "DeleteVolume failed",
            context=ErrorContext(guid="g-1", resource_id="vol-1", last_state="ATTACHED on i-1"),
            suggestions=["Detach first"],
        )

        data = error.to_dict()

        assert data['category'] == "remote_rejection"
        assert data['retryable'] is False
        assert data['context']['resource_id'] == "vol-1"
        assert data['suggestions'] == ["Detach first"]

    def test_user_message(self):
        error = ValidationError(
            "DiskType is empty",
            context=ErrorContext(guid="g-2"),
            suggestions=["Set disk_type"],
        )

        message = error.to_user_message()

        assert message.startswith("ERROR (validation): DiskType is empty")
        assert "Request: g-2" in message
        assert "1. Set disk_type" in message

    def test_category_override(self):
        error = ActionError("x", category=ErrorCategory.CONFLICT)

        assert error.category is ErrorCategory.CONFLICT
        assert ActionError.category is ErrorCategory.UNKNOWN
