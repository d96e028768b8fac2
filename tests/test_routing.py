"""Tests for routing services."""

import boto3
import pytest
from botocore.stub import Stubber

from rollout.errors import RoutingError
from rollout.routing import FULL_CUTOVER, PARTIAL_SPLIT, InMemoryRouter, LambdaAliasRouter

FUNCTION_ARN = "arn:aws:lambda:eu-west-1:123456789012:function:orders"

ALIAS_RESPONSE = {
    "AliasArn": f"{FUNCTION_ARN}:live",
    "Name": "live",
    "FunctionVersion": "6",
}


@pytest.fixture
def lambda_client():
    return boto3.client(
        "lambda",
        region_name="eu-west-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_partial_split_sets_additional_weight(lambda_client):
    router = LambdaAliasRouter(client=lambda_client)
    with Stubber(lambda_client) as stubber:
        stubber.add_response(
            "update_alias",
            ALIAS_RESPONSE,
            {
                "FunctionName": FUNCTION_ARN,
                "Name": "live",
                "RoutingConfig": {"AdditionalVersionWeights": {"7": 0.3}},
            },
        )
        router.set_partial_split(FUNCTION_ARN, "live", "7", 0.3)
        stubber.assert_no_pending_responses()


def test_full_cutover_moves_version_and_clears_weights(lambda_client):
    router = LambdaAliasRouter(client=lambda_client)
    with Stubber(lambda_client) as stubber:
        stubber.add_response(
            "update_alias",
            {**ALIAS_RESPONSE, "FunctionVersion": "7"},
            {
                "FunctionName": FUNCTION_ARN,
                "Name": "live",
                "FunctionVersion": "7",
                "RoutingConfig": {"AdditionalVersionWeights": {}},
            },
        )
        router.set_full_cutover(FUNCTION_ARN, "live", "7")
        stubber.assert_no_pending_responses()


def test_client_error_becomes_routing_error(lambda_client):
    router = LambdaAliasRouter(client=lambda_client)
    with Stubber(lambda_client) as stubber:
        stubber.add_client_error(
            "update_alias",
            service_error_code="ResourceNotFoundException",
            service_message="Alias not found",
            http_status_code=404,
        )
        with pytest.raises(RoutingError) as exc_info:
            router.set_partial_split(FUNCTION_ARN, "live", "7", 0.1)

    error = exc_info.value
    assert error.code == "ResourceNotFoundException"
    assert error.operation == PARTIAL_SPLIT
    assert "Alias not found" in str(error)


def test_unknown_profile_becomes_routing_error():
    with pytest.raises(RoutingError):
        LambdaAliasRouter(region="eu-west-1", profile="no-such-profile-for-rollout-tests")


def test_in_memory_partial_split_overwrites():
    router = InMemoryRouter(baseline_version="6")

    router.set_partial_split("orders", "live", "7", 0.2)
    router.set_partial_split("orders", "live", "7", 0.2)

    route = router.get_route("orders", "live")
    assert route.version == "6"
    assert route.additional_weights == {"7": 0.2}
    assert route.candidate_share == 0.2


def test_in_memory_cutover_is_idempotent():
    once = InMemoryRouter(baseline_version="6")
    twice = InMemoryRouter(baseline_version="6")
    for router in (once, twice):
        router.set_partial_split("orders", "live", "7", 0.9)
    once.set_full_cutover("orders", "live", "7")
    twice.set_full_cutover("orders", "live", "7")
    twice.set_full_cutover("orders", "live", "7")

    assert once.get_route("orders", "live") == twice.get_route("orders", "live")
    assert twice.get_route("orders", "live").to_dict() == {"version": "7", "additional_weights": {}}


def test_in_memory_injected_failure_leaves_route_untouched():
    router = InMemoryRouter(fail_on_call=2)
    router.set_partial_split("orders", "live", "7", 0.1)

    with pytest.raises(RoutingError) as exc_info:
        router.set_full_cutover("orders", "live", "7")

    assert exc_info.value.operation == FULL_CUTOVER
    assert router.get_route("orders", "live").additional_weights == {"7": 0.1}
    assert len(router.calls) == 2
