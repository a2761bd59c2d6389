"""Declarative registry of provider clients."""

SUPPORTED_PROVIDERS = {
    "local": {
        "module": "stackapply.provider.local",
        "class": "LocalProvider",
        "description": "Simulated cloud persisted to a local JSON file",
        "extra": None,
    },
    "aws": {
        "module": "stackapply.provider.aws",
        "class": "AwsProvider",
        "description": "Amazon Web Services via boto3",
        "extra": "aws",
    },
}
