"""Names shared by the pipeline builder, the template macros and cleanup."""

from enum import Enum

LIBRARY_NAMESPACE = 'uniform-pipeline'

# Tags on inner pipelines and contained stacks
STACK_NAME_TAG = f'{LIBRARY_NAMESPACE}:contained-stack-name'
STACK_VERSION_TAG = f'{LIBRARY_NAMESPACE}:contained-stack-version'
DEPLOYER_STACK_NAME_TAG = f'{LIBRARY_NAMESPACE}:deployer-stack-name'
STACK_DEPLOYED_AT_TAG = f'{LIBRARY_NAMESPACE}:deployed-at'

# Template macros
CHANGESET_RENAME_MACRO = f'{LIBRARY_NAMESPACE}-changeset-rename-macro'
ROLE_REASSIGN_MACRO = f'{LIBRARY_NAMESPACE}-role-reassign-macro'

# Changeset naming
GENERATED_CHANGESET_NAME = 'PipelineChange'
UNIFORM_CHANGESET_PREFIX = 'UniformPipelineChange'

# Fixed stage names of a generated inner pipeline
SOURCE_STAGE = 'Source'
BUILD_STAGE = 'Build'
SELF_MUTATE_STAGE = 'UpdatePipeline'
ASSETS_STAGE = 'Assets'
DEPLOYMENT_STAGE_PREFIX = 'deployment-'

# Action names inside deployment stages
PREPARE_ACTION = 'Prepare'
DEPLOY_ACTION = 'Deploy'
POSTMAN_ACTION_MARKER = '-run-postman-'
APPROVAL_ACTION_MARKER = '-approval-promote-to-'

# CodeBuild project description markers
SYNTH_STEP_NAME = 'synth-step'
SELF_MUTATE_PROJECT_MARKER = 'UpdatePipeline/SelfMutate'
FILE_ASSET_PROJECT_MARKER = 'Assets/FileAsset'

DISABLE_TRANSITION_REASON = 'Avoid manual approval expiration after one week'

# Conventional file locations in a contained stack's source tree
PIPELINES_BUILD_SPEC_DEF_FILE = 'pipelines/buildspec.yaml'
PIPELINES_BUILD_SPEC_POSTMAN_DEF_FILE = 'pipelines/buildspec-postman.yaml'
PIPELINES_POSTMAN_SPEC_DEF_FILE = 'pipelines/postman.json'

INNER_PIPELINE_INPUT_FOLDER = 'inner-pipeline-input'
ENVIRONMENT_VARIABLE_PREFIX = 'UNIFORM_PIPELINES_ENV_'
CDK_DEFAULT_QUALIFIER = 'hnb659fds'

# Resource types
PIPELINE_RESOURCE_TYPE = 'AWS::CodePipeline::Pipeline'
CODEBUILD_PROJECT_RESOURCE_TYPE = 'AWS::CodeBuild::Project'
IAM_ROLE_RESOURCE_TYPE = 'AWS::IAM::Role'
IAM_POLICY_RESOURCE_TYPE = 'AWS::IAM::Policy'


class PipelineRoles(str, Enum):
    """Pre-provisioned roles shared by every inner pipeline."""

    INNER_PIPELINE_MAIN_ROLE = 'uniform-pipeline-inner-pipeline-main-role'
    SOURCE_ACTION = 'uniform-pipeline-inner-source-action-role'
    BUILD_ACTION = 'uniform-pipeline-inner-build-action-role'
    SELF_MUTATE_ACTION = 'uniform-pipeline-inner-self-mutate-action-role'
    ASSETS_ACTION = 'uniform-pipeline-inner-assets-action-role'
    POSTMAN_ACTION = 'uniform-pipeline-inner-postman-action-role'
    APPROVAL_ACTION = 'uniform-pipeline-inner-approval-action-role'
    CDK_BUILD_PROJECT = 'uniform-pipeline-inner-cdk-build-project-role'
    POSTMAN_BUILD_PROJECT = 'uniform-pipeline-inner-postman-project-role'
    SELF_MUTATE_PROJECT = 'uniform-pipeline-inner-self-mutate-project-role'
    ASSETS_PROJECT = 'uniform-pipeline-inner-assets-project-role'
