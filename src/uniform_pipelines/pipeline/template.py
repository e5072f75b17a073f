"""Renders a pipeline definition as a deployment template fragment.

The rendered shape mirrors what the pipeline synthesizer generates: fixed
Source/Build/UpdatePipeline/Assets stages, one stage per deployment target,
one auto-generated role and policy per pipeline, action and build project,
and the two macro transforms that later rewrite it.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from uniform_pipelines.model.constants import (
    ASSETS_STAGE,
    BUILD_STAGE,
    CHANGESET_RENAME_MACRO,
    CODEBUILD_PROJECT_RESOURCE_TYPE,
    DEPLOY_ACTION,
    DEPLOYER_STACK_NAME_TAG,
    FILE_ASSET_PROJECT_MARKER,
    GENERATED_CHANGESET_NAME,
    IAM_POLICY_RESOURCE_TYPE,
    IAM_ROLE_RESOURCE_TYPE,
    INNER_PIPELINE_INPUT_FOLDER,
    LIBRARY_NAMESPACE,
    PIPELINE_RESOURCE_TYPE,
    PIPELINES_BUILD_SPEC_DEF_FILE,
    PIPELINES_BUILD_SPEC_POSTMAN_DEF_FILE,
    PREPARE_ACTION,
    ROLE_REASSIGN_MACRO,
    SELF_MUTATE_PROJECT_MARKER,
    SELF_MUTATE_STAGE,
    SOURCE_STAGE,
    STACK_NAME_TAG,
    STACK_VERSION_TAG,
    SYNTH_STEP_NAME,
)
from uniform_pipelines.model.naming import group_cross_region_environments, make_cdk_default_deploy_role
from uniform_pipelines.pipeline.buildspec import (
    POSTMAN_REPORT_GROUP,
    SYNTH_OUTPUT_DIRECTORY,
    BuildSpec,
    apply_override,
    has_build_spec,
    has_postman_build_spec,
    load_build_spec_override,
    postman_build_spec,
    synth_build_spec,
    template_configuration_file,
    write_template_configuration_command,
)
from uniform_pipelines.pipeline.planner import PipelineDefinition, PipelineStageSpec
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)

PIPELINE_LOGICAL_ID = 'Pipeline'
SOURCE_ARTIFACT = 'source'
SYNTH_OUTPUT_ARTIFACT = 'synth-output'


def support_bucket_name(region: str) -> str:
    """Artifact replication bucket for a cross-region deployment target."""
    return f"{LIBRARY_NAMESPACE}-support-{region}"


def _logical_id(*parts: str) -> str:
    return ''.join(''.join(ch for ch in part.title() if ch.isalnum()) for part in parts)


class PipelineTemplateBuilder:
    """Builds the template fragment for an inner pipeline."""

    def __init__(
        self,
        source_bucket_name: str,
        artifact_bucket_name: str,
        home_region: str,
        deployer_stack_name: Optional[str] = None,
        base_dir: str = '.',
        environment_variables: Optional[Mapping[str, str]] = None,
        report_group: str = POSTMAN_REPORT_GROUP,
    ):
        """
        Args:
            source_bucket_name: Bucket holding the zipped contained stack sources
            artifact_bucket_name: Pipeline artifact bucket in the home region
            home_region: Region the pipeline runs in
            deployer_stack_name: Name of the stack deploying the pipeline;
                defaults to ``<pipeline name>-stack``
            base_dir: Contained stack directory holding optional buildspec overrides
            environment_variables: Target environment variables exposed to the synth step
            report_group: CodeBuild report group receiving smoke-test results
        """
        self.source_bucket_name = source_bucket_name
        self.artifact_bucket_name = artifact_bucket_name
        self.home_region = home_region
        self.deployer_stack_name = deployer_stack_name
        self.base_dir = base_dir
        self.environment_variables = dict(environment_variables or {})
        self.report_group = report_group
        self._resources: Dict[str, Any] = {}

    def render(self, definition: PipelineDefinition) -> Dict[str, Any]:
        """Render the full template (Transform + Resources)."""
        self._resources = {}
        pipeline_name = definition.pipeline_name

        stages = [
            self._source_stage(definition),
            self._single_project_stage(
                BUILD_STAGE, SYNTH_STEP_NAME, pipeline_name, f"{BUILD_STAGE}/{SYNTH_STEP_NAME}",
                build_spec=self._synth_build_spec(definition),
                output_artifact=SYNTH_OUTPUT_ARTIFACT,
            ),
            self._single_project_stage(SELF_MUTATE_STAGE, 'SelfMutate', pipeline_name, SELF_MUTATE_PROJECT_MARKER),
            self._single_project_stage(ASSETS_STAGE, 'FileAsset1', pipeline_name, f"{FILE_ASSET_PROJECT_MARKER}1"),
        ]
        stages.extend(self._deployment_stage(definition, stage) for stage in definition.stages)

        pipeline_role = self._generated_role('PipelineRole', 'codepipeline.amazonaws.com')
        properties: Dict[str, Any] = {
            'Name': pipeline_name,
            'PipelineType': 'V2',
            'RoleArn': {'Fn::GetAtt': [pipeline_role, 'Arn']},
            'Stages': stages,
            'ArtifactStores': self._artifact_stores(definition),
            'Tags': [
                {'Key': STACK_NAME_TAG, 'Value': definition.contained_stack.name},
                {'Key': STACK_VERSION_TAG, 'Value': definition.contained_stack.version},
                {'Key': DEPLOYER_STACK_NAME_TAG, 'Value': self._deployer_stack_name(definition)},
            ],
        }
        if definition.disabled_transitions:
            properties['DisableInboundStageTransitions'] = [
                {'Reason': transition.reason, 'StageName': transition.stage_name}
                for transition in definition.disabled_transitions
            ]

        self._resources[PIPELINE_LOGICAL_ID] = {
            'Type': PIPELINE_RESOURCE_TYPE,
            'Properties': properties,
            'DependsOn': [f"{pipeline_role}DefaultPolicy", pipeline_role],
        }

        logger.debug(f"Rendered {len(self._resources)} resources for {pipeline_name}")
        return {
            'AWSTemplateFormatVersion': '2010-09-09',
            'Transform': [CHANGESET_RENAME_MACRO, ROLE_REASSIGN_MACRO],
            'Resources': self._resources,
        }

    def _deployer_stack_name(self, definition: PipelineDefinition) -> str:
        return self.deployer_stack_name or f"{definition.pipeline_name}-stack"

    def _synth_build_spec(self, definition: PipelineDefinition) -> BuildSpec:
        build_spec = synth_build_spec(self.environment_variables)
        if has_build_spec(self.base_dir):
            path = Path(self.base_dir) / PIPELINES_BUILD_SPEC_DEF_FILE
            logger.info(f"Applying buildspec overrides from {path}")
            build_spec = apply_override(build_spec, load_build_spec_override(path))

        # Stack tags reach each deployment stage through a template configuration
        # file written next to the synthesized templates.
        output_directory = build_spec.spec.get('artifacts', {}).get('base-directory', SYNTH_OUTPUT_DIRECTORY)
        if definition.stages:
            build_spec.add_commands('post_build', [
                write_template_configuration_command(stage.stage_name, stage.stack_tags, output_directory)
                for stage in definition.stages
            ])
        return build_spec

    def _postman_build_spec(self, stage: PipelineStageSpec) -> BuildSpec:
        build_spec = postman_build_spec(stage.target_environment, self.report_group)
        if has_postman_build_spec(self.base_dir):
            path = Path(self.base_dir) / PIPELINES_BUILD_SPEC_POSTMAN_DEF_FILE
            logger.info(f"Applying buildspec overrides from {path}")
            build_spec = apply_override(build_spec, load_build_spec_override(path))
        return build_spec

    def _artifact_stores(self, definition: PipelineDefinition) -> List[Dict[str, Any]]:
        regions = group_cross_region_environments(
            self.home_region, (stage.target_environment for stage in definition.stages)
        )
        stores = [{
            'Region': self.home_region,
            'ArtifactStore': {'Type': 'S3', 'Location': self.artifact_bucket_name},
        }]
        for region in sorted(regions):
            stores.append({
                'Region': region,
                'ArtifactStore': {'Type': 'S3', 'Location': support_bucket_name(region)},
            })
        return stores

    def _generated_role(self, logical_id: str, service: str) -> str:
        self._resources[logical_id] = {
            'Type': IAM_ROLE_RESOURCE_TYPE,
            'Properties': {
                'AssumeRolePolicyDocument': {
                    'Version': '2012-10-17',
                    'Statement': [{
                        'Action': 'sts:AssumeRole',
                        'Effect': 'Allow',
                        'Principal': {'Service': service},
                    }],
                },
            },
        }
        self._resources[f"{logical_id}DefaultPolicy"] = {
            'Type': IAM_POLICY_RESOURCE_TYPE,
            'Properties': {
                'PolicyName': f"{logical_id}DefaultPolicy",
                'Roles': [{'Ref': logical_id}],
                'PolicyDocument': {'Version': '2012-10-17', 'Statement': []},
            },
        }
        return logical_id

    def _action_role_arn(self, *parts: str) -> Dict[str, Any]:
        role = self._generated_role(_logical_id(*parts, 'ActionRole'), 'codepipeline.amazonaws.com')
        return {'Fn::GetAtt': [role, 'Arn']}

    def _codebuild_project(self, name: str, description: str, build_spec: Optional[BuildSpec] = None) -> str:
        logical_id = _logical_id(name, 'Project')
        role = self._generated_role(_logical_id(name, 'ProjectRole'), 'codebuild.amazonaws.com')
        build_spec = build_spec or BuildSpec(spec={})
        source: Dict[str, Any] = {'Type': 'CODEPIPELINE'}
        if build_spec.spec:
            source['BuildSpec'] = build_spec.render()
        environment: Dict[str, Any] = {
            'ComputeType': 'BUILD_GENERAL1_SMALL',
            'Image': build_spec.image,
            'Type': 'LINUX_CONTAINER',
        }
        if build_spec.environment_variables:
            environment['EnvironmentVariables'] = [
                {'Name': key, 'Type': 'PLAINTEXT', 'Value': value}
                for key, value in build_spec.environment_variables.items()
            ]
        self._resources[logical_id] = {
            'Type': CODEBUILD_PROJECT_RESOURCE_TYPE,
            'Properties': {
                'Description': description,
                'ServiceRole': {'Fn::GetAtt': [role, 'Arn']},
                'Source': source,
                'Artifacts': {'Type': 'CODEPIPELINE'},
                'Environment': environment,
            },
        }
        return logical_id

    def _source_stage(self, definition: PipelineDefinition) -> Dict[str, Any]:
        stack = definition.contained_stack
        return {
            'Name': SOURCE_STAGE,
            'Actions': [{
                'Name': 'source-bundle',
                'ActionTypeId': {'Category': 'Source', 'Owner': 'AWS', 'Provider': 'S3', 'Version': '1'},
                'Configuration': {
                    'S3Bucket': self.source_bucket_name,
                    'S3ObjectKey': f"{INNER_PIPELINE_INPUT_FOLDER}/{stack.name}-{stack.version}.zip",
                    'PollForSourceChanges': False,
                },
                'OutputArtifacts': [{'Name': SOURCE_ARTIFACT}],
                'RoleArn': self._action_role_arn(SOURCE_STAGE, 'source-bundle'),
                'RunOrder': 1,
            }],
        }

    def _single_project_stage(
        self,
        stage_name: str,
        action_name: str,
        pipeline_name: str,
        marker: str,
        build_spec: Optional[BuildSpec] = None,
        output_artifact: Optional[str] = None,
    ) -> Dict[str, Any]:
        project = self._codebuild_project(
            f"{stage_name}-{action_name}", f"Pipeline step {pipeline_name}/{marker}", build_spec
        )
        return {
            'Name': stage_name,
            'Actions': [self._codebuild_action(
                action_name, project, (stage_name, action_name), run_order=1, output_artifact=output_artifact
            )],
        }

    def _codebuild_action(
        self,
        action_name: str,
        project: str,
        role_parts,
        run_order: int,
        output_artifact: Optional[str] = None,
    ) -> Dict[str, Any]:
        action = {
            'Name': action_name,
            'ActionTypeId': {'Category': 'Build', 'Owner': 'AWS', 'Provider': 'CodeBuild', 'Version': '1'},
            'Configuration': {'ProjectName': {'Ref': project}},
            'InputArtifacts': [{'Name': SOURCE_ARTIFACT}],
            'RoleArn': self._action_role_arn(*role_parts),
            'RunOrder': run_order,
        }
        if output_artifact:
            action['OutputArtifacts'] = [{'Name': output_artifact}]
        return action

    def _deployment_stage(self, definition: PipelineDefinition, stage: PipelineStageSpec) -> Dict[str, Any]:
        target = stage.target_environment
        stack_name = definition.contained_stack.name
        deploy_role = make_cdk_default_deploy_role(target)
        changeset_configuration = {
            'StackName': stack_name,
            'ChangeSetName': GENERATED_CHANGESET_NAME,
            'RoleArn': deploy_role.replace('-deploy-role-', '-cfn-exec-role-'),
        }

        actions: List[Dict[str, Any]] = []
        run_order = 1
        actions.append({
            'Name': PREPARE_ACTION,
            'ActionTypeId': {'Category': 'Deploy', 'Owner': 'AWS', 'Provider': 'CloudFormation', 'Version': '1'},
            'Configuration': dict(
                changeset_configuration,
                ActionMode='CHANGE_SET_REPLACE',
                TemplatePath=f"{SYNTH_OUTPUT_ARTIFACT}::{stack_name}.template.json",
                TemplateConfiguration=f"{SYNTH_OUTPUT_ARTIFACT}::{template_configuration_file(stage.stage_name)}",
            ),
            'InputArtifacts': [{'Name': SYNTH_OUTPUT_ARTIFACT}],
            'RoleArn': deploy_role,
            'Region': target.region,
            'RunOrder': run_order,
        })
        if stage.has_approval_gate:
            run_order += 1
            actions.append({
                'Name': stage.approval_step_name,
                'ActionTypeId': {'Category': 'Approval', 'Owner': 'AWS', 'Provider': 'Manual', 'Version': '1'},
                'Configuration': {'CustomData': f"Approve to deploy to {target.unique_name}"},
                'RoleArn': self._action_role_arn(stage.stage_name, stage.approval_step_name),
                'RunOrder': run_order,
            })
        run_order += 1
        actions.append({
            'Name': DEPLOY_ACTION,
            'ActionTypeId': {'Category': 'Deploy', 'Owner': 'AWS', 'Provider': 'CloudFormation', 'Version': '1'},
            'Configuration': dict(changeset_configuration, ActionMode='CHANGE_SET_EXECUTE'),
            'RoleArn': deploy_role,
            'Region': target.region,
            'RunOrder': run_order,
        })
        if stage.has_smoke_test:
            run_order += 1
            project = self._codebuild_project(
                f"{target.unique_name}-{stage.smoke_test_step_name}",
                f"Pipeline step {definition.pipeline_name}/{stage.stage_name}/{stage.smoke_test_step_name}",
                self._postman_build_spec(stage),
            )
            actions.append(self._codebuild_action(
                stage.smoke_test_step_name, project, (stage.stage_name, stage.smoke_test_step_name), run_order
            ))

        return {'Name': stage.stage_name, 'Actions': actions}
