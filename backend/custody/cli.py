# Overview: Flask CLI command groups for bootstrap, inspection, and ledger operations.

# backend/custody/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to custody (PowerShell: $env:FLASK_APP="custody").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Products (every write takes --as, the identity acting):
# - python -m flask products register --as acme --name "Vaccine" --lot L100 --category pharma --origin "Basel"
# - python -m flask products list [--status IN_TRANSIT] [--manufacturer acme] [--custodian carrier]
# - python -m flask products show 0
# - python -m flask products history 0
# - python -m flask products verify 0
# - python -m flask products ship 0 --as acme --destination "Lyon" --eta 1700000000
# - python -m flask products checkpoint 0 --as acme --location "Dock 4" --type inspection --attestation <hex>
# - python -m flask products recall 0 --as acme --reason "Contaminated batch"
#
# Verifiers:
# - python -m flask verifiers authorize --as acme --verifier lab1 --name "Lab One" --role inspector
# - python -m flask verifiers revoke --as acme --verifier lab1
# - python -m flask verifiers list acme [--all]
#
# Transfers:
# - python -m flask transfers initiate 0 --as acme --to carrier [--conditions "Keep cold"]
# - python -m flask transfers accept 0 0 --as carrier
# - python -m flask transfers reject 0 0 --as carrier --reason "Damaged"
# - python -m flask transfers cancel 0 0 --as acme
# - python -m flask transfers list 0 [--status PENDING]
#
# Certifications:
# - python -m flask certs add 0 --as acme --type GMP --expires 1800000000 --hash <hex> [--uri ...]
# - python -m flask certs revoke 0 --as acme --type GMP
# - python -m flask certs check 0 --type GMP

import json
from functools import wraps

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import CustodyError
from .extensions import db
from .services import (
    authorization_service,
    certification_service,
    checkpoint_service,
    product_service,
    transfer_service,
)


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


def domain_command(f):
    """Print domain failures as "FAIL <kind>: <message>" and exit 1."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except CustodyError as e:
            click.echo(f"FAIL {e.kind}: {e.message}", err=True)
            raise click.exceptions.Exit(1)
        except Exception:
            current_app.logger.exception("CLI command %s failed", f.__name__)
            raise
    return decorated_function


# =============================================================================
# System
# =============================================================================

@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (safe to run repeatedly)."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes", err=True)
        raise click.exceptions.Exit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# =============================================================================
# Products & checkpoints
# =============================================================================

@click.group('products')
def products_group():
    """Product registry and checkpoint ledger."""


@products_group.command('register')
@click.option('--as', 'caller', required=True, help='Manufacturer identity')
@click.option('--name', required=True)
@click.option('--description', default='')
@click.option('--lot', 'lot_number', required=True)
@click.option('--category', required=True)
@click.option('--origin', 'origin_location', required=True)
@click.option('--metadata-uri', default=None)
@with_appcontext
@domain_command
def register_product(caller, name, description, lot_number, category, origin_location, metadata_uri):
    """Register a product; the caller becomes manufacturer and custodian."""
    product_id = product_service.register_product(
        caller=caller,
        name=name,
        description=description,
        lot_number=lot_number,
        category=category,
        origin_location=origin_location,
        metadata_uri=metadata_uri,
    )
    click.echo(f"PASS Registered product {product_id}")


@products_group.command('show')
@click.argument('product_id', type=int)
@with_appcontext
@domain_command
def show_product(product_id):
    _echo_json(product_service.get_product(product_id).to_dict())


@products_group.command('history')
@click.argument('product_id', type=int)
@with_appcontext
@domain_command
def product_history(product_id):
    """Print the product's checkpoints in ledger order."""
    for checkpoint in checkpoint_service.list_checkpoints(product_id):
        click.echo(
            f"#{checkpoint.checkpoint_id} t={checkpoint.recorded_at} {checkpoint.checkpoint_type} "
            f"@ {checkpoint.location} custodian={checkpoint.custodian} verifier={checkpoint.verifier}"
        )


@products_group.command('list')
@click.option('--status', default=None, help='CREATED, IN_TRANSIT, DELIVERED, SOLD or RECALLED')
@click.option('--manufacturer', default=None)
@click.option('--custodian', default=None)
@with_appcontext
@domain_command
def list_products(status, manufacturer, custodian):
    products = product_service.list_products(status=status, manufacturer=manufacturer, custodian=custodian)
    if not products:
        click.echo("No products found.")
        return
    for product in products:
        click.echo(
            f"{product.id} {product.name} lot={product.lot_number} status={product.status} "
            f"custodian={product.current_custodian}"
        )


@products_group.command('verify')
@click.argument('product_id', type=int)
@with_appcontext
@domain_command
def verify_product(product_id):
    _echo_json(product_service.verify_authenticity(product_id))


@products_group.command('ship')
@click.argument('product_id', type=int)
@click.option('--as', 'caller', required=True)
@click.option('--destination', required=True)
@click.option('--eta', 'expected_arrival', type=int, required=True, help='Expected arrival tick')
@with_appcontext
@domain_command
def ship_product(product_id, caller, destination, expected_arrival):
    product_service.set_shipping_details(
        caller=caller,
        product_id=product_id,
        destination=destination,
        expected_arrival=expected_arrival,
    )
    click.echo(f"PASS Shipping details updated for product {product_id}")


@products_group.command('checkpoint')
@click.argument('product_id', type=int)
@click.option('--as', 'caller', required=True)
@click.option('--location', required=True)
@click.option('--type', 'checkpoint_type', required=True)
@click.option('--attestation', 'attestation_hash', required=True, help='SHA-256 hex digest')
@click.option('--temperature', type=float, default=None)
@click.option('--humidity', type=float, default=None)
@click.option('--observations', default=None)
@with_appcontext
@domain_command
def add_checkpoint(product_id, caller, location, checkpoint_type, attestation_hash, temperature, humidity, observations):
    checkpoint_id = checkpoint_service.add_checkpoint(
        caller=caller,
        product_id=product_id,
        location=location,
        checkpoint_type=checkpoint_type,
        attestation_hash=attestation_hash,
        temperature=temperature,
        humidity=humidity,
        observations=observations,
    )
    click.echo(f"PASS Recorded checkpoint {checkpoint_id} for product {product_id}")


@products_group.command('recall')
@click.argument('product_id', type=int)
@click.option('--as', 'caller', required=True)
@click.option('--reason', required=True)
@with_appcontext
@domain_command
def recall_product(product_id, caller, reason):
    product_service.recall_product(caller=caller, product_id=product_id, reason=reason)
    click.echo(f"PASS Product {product_id} recalled")


# =============================================================================
# Verifiers
# =============================================================================

@click.group('verifiers')
def verifiers_group():
    """Verifier authorization registry."""


@verifiers_group.command('authorize')
@click.option('--as', 'caller', required=True, help='Organization identity')
@click.option('--verifier', required=True)
@click.option('--name', required=True)
@click.option('--role', required=True)
@with_appcontext
@domain_command
def authorize_verifier(caller, verifier, name, role):
    authorization_service.authorize_verifier(caller=caller, verifier=verifier, name=name, role=role)
    click.echo(f"PASS {verifier} authorized for {caller}")


@verifiers_group.command('revoke')
@click.option('--as', 'caller', required=True, help='Organization identity')
@click.option('--verifier', required=True)
@with_appcontext
@domain_command
def revoke_verifier(caller, verifier):
    authorization_service.deauthorize_verifier(caller=caller, verifier=verifier)
    click.echo(f"PASS {verifier} deauthorized for {caller}")


@verifiers_group.command('list')
@click.argument('organization')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deauthorized verifiers')
@with_appcontext
def list_verifiers(organization, include_inactive):
    records = authorization_service.list_verifiers(organization, include_inactive=include_inactive)
    if not records:
        click.echo("No verifiers found.")
        return
    for record in records:
        state = "active" if record.is_active else "inactive"
        click.echo(f"{record.verifier} ({record.verifier_name}) role={record.role} {state}")


# =============================================================================
# Transfers
# =============================================================================

@click.group('transfers')
def transfers_group():
    """Custody transfer workflow."""


@transfers_group.command('initiate')
@click.argument('product_id', type=int)
@click.option('--as', 'caller', required=True)
@click.option('--to', 'recipient', required=True)
@click.option('--conditions', default=None)
@with_appcontext
@domain_command
def initiate_transfer(product_id, caller, recipient, conditions):
    transfer_id = transfer_service.initiate_transfer(
        caller=caller,
        product_id=product_id,
        recipient=recipient,
        conditions=conditions,
    )
    click.echo(f"PASS Transfer {transfer_id} pending for product {product_id}")


@transfers_group.command('accept')
@click.argument('product_id', type=int)
@click.argument('transfer_id', type=int)
@click.option('--as', 'caller', required=True)
@click.option('--location', default=None)
@with_appcontext
@domain_command
def accept_transfer(product_id, transfer_id, caller, location):
    transfer_service.accept_transfer(
        caller=caller,
        product_id=product_id,
        transfer_id=transfer_id,
        location=location,
    )
    click.echo(f"PASS Transfer {transfer_id} completed; {caller} now holds product {product_id}")


@transfers_group.command('reject')
@click.argument('product_id', type=int)
@click.argument('transfer_id', type=int)
@click.option('--as', 'caller', required=True)
@click.option('--reason', required=True)
@with_appcontext
@domain_command
def reject_transfer(product_id, transfer_id, caller, reason):
    transfer_service.reject_transfer(caller=caller, product_id=product_id, transfer_id=transfer_id, reason=reason)
    click.echo(f"PASS Transfer {transfer_id} rejected")


@transfers_group.command('cancel')
@click.argument('product_id', type=int)
@click.argument('transfer_id', type=int)
@click.option('--as', 'caller', required=True)
@with_appcontext
@domain_command
def cancel_transfer(product_id, transfer_id, caller):
    transfer_service.cancel_transfer(caller=caller, product_id=product_id, transfer_id=transfer_id)
    click.echo(f"PASS Transfer {transfer_id} cancelled")


@transfers_group.command('list')
@click.argument('product_id', type=int)
@click.option('--status', default=None, help='PENDING, COMPLETED, REJECTED or CANCELLED')
@with_appcontext
@domain_command
def list_transfers(product_id, status):
    _echo_json([t.to_dict() for t in transfer_service.list_transfers(product_id, status=status)])


# =============================================================================
# Certifications
# =============================================================================

@click.group('certs')
def certs_group():
    """Certification registry."""


@certs_group.command('add')
@click.argument('product_id', type=int)
@click.option('--as', 'caller', required=True)
@click.option('--type', 'cert_type', required=True)
@click.option('--expires', 'expires_at', type=int, required=True, help='Expiry tick (exclusive)')
@click.option('--hash', 'cert_hash', required=True, help='SHA-256 hex digest of the document')
@click.option('--uri', default=None)
@with_appcontext
@domain_command
def add_certification(product_id, caller, cert_type, expires_at, cert_hash, uri):
    certification_service.add_certification(
        caller=caller,
        product_id=product_id,
        cert_type=cert_type,
        expires_at=expires_at,
        cert_hash=cert_hash,
        uri=uri,
    )
    click.echo(f"PASS Certification {cert_type} issued for product {product_id}")


@certs_group.command('revoke')
@click.argument('product_id', type=int)
@click.option('--as', 'caller', required=True)
@click.option('--type', 'cert_type', required=True)
@with_appcontext
@domain_command
def revoke_certification(product_id, caller, cert_type):
    certification_service.revoke_certification(caller=caller, product_id=product_id, cert_type=cert_type)
    click.echo(f"PASS Certification {cert_type} revoked for product {product_id}")


@certs_group.command('check')
@click.argument('product_id', type=int)
@click.option('--type', 'cert_type', required=True)
@with_appcontext
def check_certification(product_id, cert_type):
    valid = certification_service.is_certification_valid(product_id, cert_type)
    click.echo("VALID" if valid else "NOT VALID")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(verifiers_group)
    app.cli.add_command(transfers_group)
    app.cli.add_command(certs_group)
