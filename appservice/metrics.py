from prometheus_client import Counter

DEPLOYMENT_COUNTER = Counter(
    'appservice_deployments_total',
    'Total number of web app deployments started',
    ['publish_type']
)

COMMAND_COUNTER = Counter(
    'appservice_commands_total',
    'Deployment commands executed, by command and result',
    ['command', 'result']
)

ARM_POLL_COUNTER = Counter(
    'appservice_arm_polls_total',
    'Number of ARM deployment operation polls'
)

ARM_DEPLOYMENT_COUNTER = Counter(
    'appservice_arm_deployments_total',
    'ARM deployments monitored to completion, by outcome',
    ['outcome']
)
