from django.core.management.base import BaseCommand, CommandError
import yaml
import os

from django_rebac_batch.batch.engine import BatchEngine
from django_rebac_batch.exceptions import RebacBatchError, ValidationError
from django_rebac_batch.types.tuples import Condition, TupleKey


class Command(BaseCommand):
    help = 'Apply tuple writes and deletes from a YAML file'

    def add_arguments(self, parser):
        parser.add_argument('path', help='YAML file with "writes" and/or "deletes" lists')
        parser.add_argument('--transactional', action='store_true', help='Send everything as one atomic call (max 100 tuples)')
        parser.add_argument('--max-parallel', type=int, dest='max_parallel_requests')
        parser.add_argument('--chunk-size', type=int, dest='max_tuples_per_chunk')
        parser.add_argument('--max-retries', type=int, dest='max_retries')
        parser.add_argument('--retry-delay', type=float, dest='retry_delay_seconds')
        parser.add_argument('--stop-on-first-error', action='store_true', default=None, dest='stop_on_first_error')
        parser.add_argument('--strict', action='store_true', help='Exit with an error if any chunk failed')

    def handle(self, *args, **options):
        path = options['path']
        if not os.path.exists(path):
            raise CommandError(f'File not found: {path}')

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise CommandError('Tuple file must contain a mapping with "writes" and/or "deletes".')

        try:
            writes = [_tuple_from_yaml(item) for item in data.get('writes') or []]
            deletes = [_tuple_from_yaml(item) for item in data.get('deletes') or []]
        except (AttributeError, KeyError, TypeError, ValidationError) as exc:
            raise CommandError(f'Invalid tuple entry: {exc}') from exc

        overrides = {
            name: options[name]
            for name in (
                'max_parallel_requests',
                'max_tuples_per_chunk',
                'max_retries',
                'retry_delay_seconds',
                'stop_on_first_error',
            )
            if options.get(name) is not None
        }

        try:
            result = BatchEngine().write_and_delete(
                writes,
                deletes,
                transactional=options['transactional'],
                options=overrides,
            )
        except ValidationError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(
            f'{result.total_operations} operation(s) in {result.total_chunks} chunk(s): '
            f'{result.successful_chunks} succeeded, {result.failed_chunks} failed '
            f'({result.success_rate():.0%})'
        )
        for error in result.errors:
            self.stderr.write(f'  {error}')

        if options['strict']:
            try:
                result.throw_on_failure()
            except RebacBatchError as exc:
                raise CommandError(f'Batch failed: {exc}') from exc
        if result.failed_chunks == 0:
            self.stdout.write(self.style.SUCCESS('Tuples applied'))


def _tuple_from_yaml(item):
    condition = item.get('condition')
    return TupleKey(
        user=item['user'],
        relation=item['relation'],
        object=item['object'],
        condition=Condition(name=condition['name'], context=condition.get('context')) if condition else None,
    )
