from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Production, Quality, BOM, Admin'

    def handle(self, *args, **options):
        # IsAllowed(app) admits any user holding a permission in that app
        groups_config = [
            {
                'name': 'Production',
                'description': 'Shop floor - start runs, update progress, approve or reject output',
                'apps': ['production', 'bom', 'catalog'],
                'codenames': ['view_bom', 'view_product', 'view_stockmovement'],
            },
            {
                'name': 'Quality',
                'description': 'Gate inspection - record quality checks on incoming material',
                'apps': ['quality', 'catalog'],
                'codenames': ['view_product', 'view_stockmovement'],
            },
            {
                'name': 'BOM',
                'description': 'Engineering - author and revise bills of materials',
                'apps': ['bom', 'catalog'],
                'codenames': None,
            },
            {
                'name': 'Admin',
                'description': 'Full system access including backend',
                'apps': None,
                'codenames': None,
            },
        ]

        created_count = 0
        updated_count = 0

        for group_config in groups_config:
            group, created = Group.objects.get_or_create(name=group_config['name'])

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {group_config["name"]}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {group_config["name"]}')
                updated_count += 1

            if group_config['apps'] is None:
                permissions = Permission.objects.all()
            else:
                # Full access to the group's own app, read access elsewhere
                own_app = group_config['apps'][0]
                permissions = Permission.objects.filter(content_type__app_label=own_app)
                if group_config['codenames'] is None:
                    permissions = Permission.objects.filter(content_type__app_label__in=group_config['apps'])
                else:
                    permissions = permissions | Permission.objects.filter(
                        content_type__app_label__in=group_config['apps'][1:],
                        codename__in=group_config['codenames'],
                    )
            group.permissions.set(permissions)
            self.stdout.write(f'  {permissions.count()} permissions set for {group_config["name"]} group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))
