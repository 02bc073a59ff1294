"""
Management command to seed default roles for companies.

Creates whichever of Admin, Analyst and Viewer a company is missing. Existing
roles are left untouched, so re-running is safe.
"""
from django.core.management.base import BaseCommand, CommandError
from apps.core.validators import parse_uuid
from apps.rbac.services import RoleService
from apps.tenants.models import Company


class Command(BaseCommand):
    help = 'Seed missing default roles for company(ies) (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--company',
            type=str,
            help='Company ID to seed roles for',
        )
        parser.add_argument(
            '--all',
            action='store_true',
            help='Seed roles for all companies',
        )

    def handle(self, *args, **options):
        company_id = options.get('company')
        seed_all = options.get('all')

        if not company_id and not seed_all:
            raise CommandError('You must specify either --company=<id> or --all')

        if company_id and seed_all:
            raise CommandError('Cannot specify both --company and --all')

        if seed_all:
            companies = list(Company.objects.all())
            self.stdout.write(f'Seeding roles for all {len(companies)} companies...')
        else:
            company_uuid = parse_uuid(company_id)
            company = Company.objects.filter(id=company_uuid).first() if company_uuid else None
            if company is None:
                raise CommandError(f'Company not found: {company_id}')
            companies = [company]

        total_created = 0
        for company in companies:
            created = RoleService.seed_default_roles(company)
            total_created += len(created)
            if created:
                names = ', '.join(role.name for role in created)
                self.stdout.write(self.style.SUCCESS(f'  Created for {company.name}: {names}'))
            else:
                self.stdout.write(self.style.HTTP_INFO(f'  {company.name}: all default roles exist'))

        self.stdout.write(
            self.style.SUCCESS(
                f'Seeding complete: {total_created} roles created across {len(companies)} company(ies)'
            )
        )
