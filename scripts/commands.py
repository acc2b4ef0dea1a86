# commands.py

import click
from flask import current_app
from flask.cli import with_appcontext
from services.enums import RoleName, ProfileStatus

DEFAULT_ROLES = {
    RoleName.ADMIN.value: 'Manage users, invitations and all properties',
    RoleName.USER.value: 'Work leads on assigned properties',
}


def _seed_roles():
    roles = current_app.services.get('role_repository')
    created = []
    for name, description in DEFAULT_ROLES.items():
        if not roles.find_by_name(name):
            roles.create(name=name, description=description, permissions=[])
            created.append(name)
    roles.commit()
    return created


@click.command('seed-roles')
@with_appcontext
def seed_roles():
    """Create the admin and user roles"""
    created = _seed_roles()
    if created:
        click.echo(f"Created roles: {', '.join(created)}")
    else:
        click.echo('Roles already exist')


@click.command('create-organization')
@click.argument('name')
@with_appcontext
def create_organization(name):
    """Create an organization"""
    organizations = current_app.services.get('organization_repository')
    organization = organizations.create(name=name)
    organizations.commit()
    click.echo(f'Organization created: {organization.name} (id={organization.id})')


@click.command('create-admin')
@click.option('--email', prompt=True, help='Admin email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--organization-id', prompt=True, type=int, help='Organization the admin belongs to')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@with_appcontext
def create_admin(email, password, organization_id, first_name, last_name):
    """Create an admin user in an organization"""
    services = current_app.services
    if not services.get('organization_repository').get_by_id(organization_id):
        click.echo(f'Organization {organization_id} does not exist')
        return

    _seed_roles()
    admin_role = services.get('role_repository').find_by_name(RoleName.ADMIN.value)

    identity_result = services.get('identity').create_identity(email, password)
    if identity_result.is_failure:
        click.echo(f'Failed to create admin: {identity_result.error}')
        return
    identity = identity_result.data

    profiles = services.get('profile_repository')
    try:
        profiles.create(
            id=identity.id,
            email=identity.email,
            organization_id=organization_id,
            status=ProfileStatus.ACTIVE.value,
            first_name=first_name,
            last_name=last_name,
            full_name=f'{first_name} {last_name}'.strip()
        )
        services.get('user_role_repository').upsert_role(identity.id, organization_id, admin_role.id)
        profiles.commit()
    except Exception as e:
        profiles.rollback()
        services.get('identity').delete_identity(identity.id)
        click.echo(f'Failed to create admin: {e}')
        return

    click.echo(f'Admin user created successfully: {identity.email}')


def init_app(app):
    """Register commands with the Flask app"""
    app.cli.add_command(seed_roles)
    app.cli.add_command(create_organization)
    app.cli.add_command(create_admin)
