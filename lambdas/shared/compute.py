"""Start and stop the standby EC2 instance.

Fire-and-await: the call returns once EC2 accepts the request. Instance state
is not polled. Errors (botocore ClientError and friends) propagate to the
caller.
"""

import logging

logger = logging.getLogger(__name__)


class Ec2Compute:

    def __init__(self, ec2_client):
        self.ec2 = ec2_client

    def start(self, instance_id: str) -> str:
        """Start an instance and return the state EC2 reports for it."""
        logger.info('Starting EC2 instance: %s', instance_id)
        resp = self.ec2.start_instances(InstanceIds=[instance_id])
        return _current_state(resp.get('StartingInstances', []), instance_id)

    def stop(self, instance_id: str) -> str:
        """Stop an instance and return the state EC2 reports for it."""
        logger.info('Stopping EC2 instance: %s', instance_id)
        resp = self.ec2.stop_instances(InstanceIds=[instance_id])
        return _current_state(resp.get('StoppingInstances', []), instance_id)


def _current_state(changes: list, instance_id: str) -> str:
    for change in changes:
        if change.get('InstanceId') == instance_id:
            return change.get('CurrentState', {}).get('Name', '')
    return ''
