from aws_cdk import (
    App
)
from iam_baseline import (
    config
)
from iam_baseline.stack import IamBaselineStack


app = App()

TAGS = config.context_tags(app.node)

IamBaselineStack(
    app, app.node.try_get_context('stack_name') or config.DEFAULT_STACK_NAME,
    fail_on_missing_metadata=str(app.node.try_get_context('fail_on_missing_metadata')).lower() == 'true',
    tags=TAGS
)

app.synth()
