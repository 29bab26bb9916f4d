# Copyright 2024 SkyPilot Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Command-line interface for lambdeploy.

    lambdeploy deploy -f lambdeploy.yaml --stage dev

Identity and credentials come from the environment (AWS_ACCOUNT_ID,
AWS_REGION, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_ROLE, AWS_API_NAME,
STAGE); the manifest and flags override them.
"""
import argparse
import logging
import sys
from typing import List, Optional

import rich.table

from lambdeploy import __version__
from lambdeploy import deploy_logging
from lambdeploy import serverless
from lambdeploy.serverless import config as config_lib
from lambdeploy.serverless import exceptions
from lambdeploy.serverless import manifest as manifest_lib
from lambdeploy.serverless.backends import registry
from lambdeploy.utils import common_utils
from lambdeploy.utils import rich_console_utils
from lambdeploy.utils import ux_utils

logger = deploy_logging.init_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='lambdeploy',
        description='Deploy serverless functions and their triggers.')
    parser.add_argument('--version',
                        action='version',
                        version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command', required=True)

    deploy_parser = subparsers.add_parser(
        'deploy', help='Converge the remote state to the manifest.')
    deploy_parser.add_argument('-f',
                               '--file',
                               default=manifest_lib.DEFAULT_FILENAME,
                               help='Path to the manifest (default: '
                               '%(default)s).')
    deploy_parser.add_argument('--stage', help='Stage name override.')
    deploy_parser.add_argument('--api-name', help='API name override.')
    deploy_parser.add_argument('--region', help='Region override.')
    deploy_parser.add_argument('--provider',
                               default=registry.DEFAULT_PROVIDER,
                               choices=registry.supported_providers())
    deploy_parser.add_argument('--lock-dir',
                               help='Directory for deploy lock files.')
    deploy_parser.add_argument('-v',
                               '--verbose',
                               action='store_true',
                               help='Log remote responses.')
    return parser


def _print_outputs(outputs: dict) -> None:
    table = rich.table.Table(show_header=True, header_style='bold')
    table.add_column('NAME')
    table.add_column('VALUE', overflow='fold')
    for name, value in outputs.items():
        table.add_row(name, value)
    rich_console_utils.get_console().print(table)


def _deploy(args: argparse.Namespace) -> None:
    console = rich_console_utils.get_console()
    manifest = serverless.load_manifest(args.file)
    config = config_lib.DeployerConfig.from_env()
    # Manifest values override the environment, and flags override both.
    manifest.config.update({
        key: value for key, value in (('stage_name', args.stage),
                                      ('api_name', args.api_name),
                                      ('region', args.region)) if value
    })

    with console.status(ux_utils.spinner_message('Deploying...')) as status:
        outputs = serverless.deploy(
            manifest,
            config=config,
            provider=args.provider,
            lock_dir=args.lock_dir,
            status_callback=lambda message: status.update(
                ux_utils.spinner_message(message)),
        )
    console.print(ux_utils.finishing_message('Deployment complete.'))
    _print_outputs(outputs)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if getattr(args, 'verbose', False):
        deploy_logging.set_level(logging.DEBUG)

    try:
        if args.command == 'deploy':
            _deploy(args)
    except exceptions.ServerlessError as e:
        sys.stderr.write(ux_utils.error_message(str(e)) + '\n')
        return 1
    except Exception as e:  # pylint: disable=broad-except
        sys.stderr.write(
            ux_utils.error_message(
                f'Unexpected failure: {common_utils.format_exception(e)}') +
            '\n')
        logger.debug('Unexpected failure', exc_info=True)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
