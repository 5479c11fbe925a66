"""Example usage of the action registry, batch results and error handling."""

import json

from cloud_actions.config import AWSConfig, EngineConfig, KindConfig, PollConfig
from cloud_actions.engine import AggregationMode
from cloud_actions.resources import build_registry
from cloud_actions.utils import ActionError, setup_logging

PROVIDER_PARAMS = "Region=us-east-1;SecretID=test;SecretKey=test;AvailableZone=us-east-1a"


def example_storage_batch(registry):
    """Example: Create two volumes, one of them invalid."""
    print("=== Storage batch (collect all) ===")

    payload = {
        'inputs': [
            {
                'guid': 'disk-1',
                'provider_params': PROVIDER_PARAMS,
                'disk_type': 'gp3',
                'disk_size': '20',
                'disk_charge_type': 'POSTPAID_BY_HOUR',
                'instance_id': 'i-0123456789abcdef0',
                'callback_parameter': 'order-42',
            },
            {
                'guid': 'disk-2',
                'provider_params': PROVIDER_PARAMS,
                'disk_size': '20',
                'disk_charge_type': 'POSTPAID_BY_HOUR',
                'instance_id': 'i-0123456789abcdef0',
            },
        ]
    }

    result = registry.get('storage', 'create').run(payload)
    print(json.dumps(result.to_payload(), indent=2))

    for output in result.outputs:
        status = "✓" if output.code.value == "0" else "✗"
        print(f"{status} {output.guid}: {output.id or output.message}")


def example_nat_gateway_batch(registry):
    """Example: Abort-on-first-failure batch."""
    print("\n=== NAT gateway batch (abort on first failure) ===")

    payload = json.dumps({
        'inputs': [{
            'guid': 'edge-1',
            'provider_params': PROVIDER_PARAMS,
            'name': 'edge',
            'vpc_id': 'vpc-0123',
            'subnet_id': 'subnet-0123',
            'auto_allocate_eip': True,
        }]
    })

    try:
        result = registry.get('nat_gateway', 'create').run(payload)
        result.raise_for_error()
        print(f"✓ Created {result.outputs[0].id}")
    except ActionError as e:
        print(e.to_user_message())


def example_unknown_action(registry):
    """Example: Looking up an action that does not exist."""
    print("\n=== Unknown action ===")

    try:
        registry.get('storage', 'resize')
    except ActionError as e:
        print(e.to_user_message())


if __name__ == '__main__':
    setup_logging('info')

    # Point every client at a local emulator with a short poll budget
    config = EngineConfig(
        aws=AWSConfig(endpoint_url='http://localhost:4566'),
        kinds={
            'storage': KindConfig(
                aggregation=AggregationMode.COLLECT_ALL,
                poll=PollConfig(interval=1, max_attempts=10),
            ),
        },
    )
    registry = build_registry(config)

    example_storage_batch(registry)
    example_nat_gateway_batch(registry)
    example_unknown_action(registry)
