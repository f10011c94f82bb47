"""
Click命令行界面

提供DNS平台迁移、域名和记录管理的命令行接口
"""

import sqlite3
import sys
from typing import List

import click
from loguru import logger

from .config import Config
from .database import DomainDatabase
from .dns_manager import DNSManager
from .errors import DNSError
from .migrator import Migrator, MigrationOptions, DomainMigrationResult, build_stored_config
from .types import ALIYUN, CLOUDFLARE, SUPPORTED_RECORD_TYPES, RecordFilters, RecordInput
from .utils import setup_logging

PROVIDER_CHOICES = click.Choice([CLOUDFLARE, ALIYUN])


@click.group()
@click.option('--config', type=click.Path(), help='配置文件路径')
@click.option('--verbose', '-v', is_flag=True, help='详细输出')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']), help='日志级别')
@click.pass_context
def cli(ctx, config, verbose, log_level):
    """DNS平台迁移工具 - 在 CloudFlare 与阿里云DNS之间管理和迁移记录"""
    ctx.ensure_object(dict)

    try:
        app_config = Config(config_file=config)

        if verbose:
            app_config.verbose = True
            if not log_level:
                app_config.log_level = 'DEBUG'
        if log_level:
            app_config.log_level = log_level

        setup_logging(app_config)
        ctx.obj['config'] = app_config
        logger.debug("命令行界面初始化完成")

    except Exception as e:
        click.echo(f"❌ 初始化失败: {str(e)}", err=True)
        sys.exit(1)


def _get_database(ctx) -> DomainDatabase:
    return DomainDatabase(ctx.obj['config'].database_path)


def _get_stored_domain(db: DomainDatabase, domain: str) -> dict:
    stored = db.get_domain_by_name(domain)
    if not stored:
        click.echo(f"❌ 域名不存在: {domain}", err=True)
        sys.exit(1)
    return stored


def _display_migration_results(results: List[DomainMigrationResult]) -> None:
    click.echo("\n📊 迁移结果统计:")
    click.echo("=" * 50)

    total_records = migrated_records = failed_records = 0
    for item in results:
        migration = item.result
        total_records += migration.total_records
        migrated_records += migration.migrated_records
        failed_records += migration.failed_records

        click.echo(f"\n🏷️  域名: {item.domain_name or item.domain_id}")
        click.echo(f"   状态: {'✅ 成功' if item.success else '❌ 失败'}")
        click.echo(f"   总记录数: {migration.total_records}")
        click.echo(f"   已迁移: {migration.migrated_records}")
        click.echo(f"   失败: {migration.failed_records}")
        click.echo(f"   耗时: {migration.execution_time}ms")
        if migration.errors:
            click.echo("   ❌ 错误:")
            for error in migration.errors:
                click.echo(f"      - {error}")
        if migration.warnings:
            click.echo("   ⚠️  警告:")
            for warning in migration.warnings:
                click.echo(f"      - {warning}")

    total_domains = len(results)
    successful_domains = sum(1 for item in results if item.success)
    click.echo("\n📈 总体统计:")
    click.echo(f"   总域名数: {total_domains}")
    click.echo(f"   成功域名数: {successful_domains}")
    click.echo(f"   成功率: {successful_domains / total_domains * 100 if total_domains else 0:.2f}%")
    click.echo(f"   总记录数: {total_records}")
    click.echo(f"   已迁移记录: {migrated_records}")
    click.echo(f"   失败记录: {failed_records}")
    click.echo(f"   记录成功率: {migrated_records / total_records * 100 if total_records else 0:.2f}%")


@cli.command()
@click.option('--dry-run', is_flag=True, help='预览模式，不实际执行迁移')
@click.option('--domain', help='只迁移指定域名')
@click.option('--batch-size', type=click.IntRange(min=1), help='批量处理大小 (默认: 10)')
@click.option('--continue-on-error', is_flag=True, help='遇到错误继续执行')
@click.option('--verify/--no-verify', default=True, help='迁移后是否验证结果')
@click.option('--target', default=ALIYUN, type=PROVIDER_CHOICES, help='目标DNS提供商')
@click.pass_context
def migrate(ctx, dry_run, domain, batch_size, continue_on_error, verify, target):
    """迁移域名的DNS记录到目标平台"""
    try:
        config = ctx.obj['config']

        errors = config.validate_config([target])
        if errors:
            click.echo("❌ 缺少目标平台配置:", err=True)
            for error in errors:
                click.echo(f"  - {error}", err=True)
            sys.exit(1)

        options = MigrationOptions(
            dry_run=dry_run,
            batch_size=batch_size or config.migration_batch_size,
            continue_on_error=continue_on_error,
            verify_after_migration=verify,
            throttle_every=config.throttle_every,
            throttle_delay=config.throttle_delay,
        )

        db = _get_database(ctx)
        migrator = Migrator(DNSManager.from_config(config), db)

        click.echo("🚀 开始 DNS 平台迁移...")
        click.echo(f"📋 迁移选项: 目标={target} 预览={dry_run} 批量={options.batch_size} "
                   f"遇错继续={continue_on_error} 验证={verify}")

        if domain:
            stored = _get_stored_domain(db, domain)
            click.echo(f"🎯 迁移域名: {stored['domain_name']}")
            target_config = config.build_provider_config(target, domain_name=stored['domain_name'])
            results = [migrator.migrate_domain(stored['id'], target, target_config, options)]
        else:
            click.echo("🌐 迁移所有启用 DNS 的域名...")
            results = migrator.migrate_all_dns_domains(target, config.build_provider_config(target), options)

        _display_migration_results(results)

        if not dry_run and verify:
            click.echo("\n🔍 验证迁移结果...")
            for item in results:
                if not item.success:
                    continue
                click.echo(f"🔍 验证域名: {item.domain_name}")
                verification = migrator.verify_migration(item.domain_id, target)
                if verification['valid']:
                    click.echo("   ✅ 验证通过")
                else:
                    click.echo(f"   ❌ 验证失败: {', '.join(verification['errors']) or '目标平台没有记录'}")

        click.echo("\n✅ 迁移完成！")

    except DNSError as e:
        click.echo(f"❌ 迁移失败: {str(e)}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"❌ 发生未知错误: {str(e)}", err=True)
        sys.exit(1)


@cli.group()
def domain():
    """域名管理"""


@domain.command('add')
@click.argument('domain_name')
@click.option('--provider', default=CLOUDFLARE, type=PROVIDER_CHOICES, help='当前DNS提供商')
@click.option('--zone-id', help='CloudFlare Zone ID')
@click.option('--aliyun-domain', help='阿里云域名名称（默认与域名相同）')
@click.option('--disable-dns', is_flag=True, help='不启用DNS管理')
@click.pass_context
def domain_add(ctx, domain_name, provider, zone_id, aliyun_domain, disable_dns):
    """添加域名，凭据取自当前配置"""
    try:
        config = ctx.obj['config']
        provider_config = config.build_provider_config(provider, domain_name=aliyun_domain or domain_name)
        if zone_id:
            provider_config = provider_config.with_updates(cf_zone_id=zone_id)

        missing = provider_config.missing_fields()
        if missing:
            click.echo(f"⚠️  {provider} 配置不完整: {', '.join(missing)}")

        domain_id = _get_database(ctx).add_domain(domain_name, provider, provider_config,
                                                  enable_dns=not disable_dns)
        click.echo(f"✅ 域名 {domain_name} 添加成功 (ID: {domain_id})")

    except sqlite3.IntegrityError:
        click.echo(f"❌ 域名已存在: {domain_name}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"❌ 添加域名失败: {str(e)}", err=True)
        sys.exit(1)


@domain.command('list')
@click.option('--provider', type=PROVIDER_CHOICES, help='按DNS提供商过滤')
@click.pass_context
def domain_list(ctx, provider):
    """列出域名"""
    try:
        domains = _get_database(ctx).list_all_domains(provider)
        if not domains:
            click.echo("📭 没有找到域名")
            return

        click.echo(f"{'ID':<6}{'域名':<40}{'DNS提供商':<14}{'DNS':<6}")
        click.echo("-" * 66)
        for item in domains:
            click.echo(f"{item['id']:<6}{item['domain_name']:<40}{item['dns_provider'] or '':<14}"
                       f"{'✅' if item['enable_dns'] else '❌':<6}")
        click.echo(f"\n共 {len(domains)} 个域名")

    except Exception as e:
        click.echo(f"❌ 获取域名列表失败: {str(e)}", err=True)
        sys.exit(1)


def _domain_manager(ctx, domain_name: str) -> DNSManager:
    """为存储中的域名注册当前提供商并设为默认"""
    config = ctx.obj['config']
    stored = _get_stored_domain(_get_database(ctx), domain_name)
    manager = DNSManager.from_config(config)
    manager.register_provider(stored['domain_name'], build_stored_config(stored), set_default=True)
    return manager


@cli.group()
def records():
    """DNS记录管理"""


@records.command('list')
@click.argument('domain_name')
@click.option('--type', 'record_type', type=click.Choice(SUPPORTED_RECORD_TYPES, case_sensitive=False),
              help='按记录类型过滤')
@click.option('--name', help='按名称过滤（子串）')
@click.option('--content', help='按记录值过滤（子串）')
@click.pass_context
def records_list(ctx, domain_name, record_type, name, content):
    """列出域名的全部DNS记录"""
    try:
        manager = _domain_manager(ctx, domain_name)
        items = manager.get_all_dns_records(RecordFilters(type=record_type, name=name, content=content))
        if not items:
            click.echo("📭 没有找到DNS记录")
            return

        for record in items:
            proxied = ' 🟠' if record.proxied else ''
            click.echo(f"{record.id:<34}{record.type:<7}{record.name:<40}{record.content} (TTL {record.ttl}){proxied}")
        click.echo(f"\n共 {len(items)} 条记录")

    except DNSError as e:
        click.echo(f"❌ 获取DNS记录失败: {str(e)}", err=True)
        sys.exit(1)


@records.command('add')
@click.argument('domain_name')
@click.argument('record_type', type=click.Choice(SUPPORTED_RECORD_TYPES, case_sensitive=False))
@click.argument('name')
@click.argument('content')
@click.option('--ttl', type=int, help='TTL（秒），超出提供商范围时自动调整')
@click.option('--priority', type=int, help='MX/SRV 优先级')
@click.option('--proxied', is_flag=True, help='开启CloudFlare代理')
@click.pass_context
def records_add(ctx, domain_name, record_type, name, content, ttl, priority, proxied):
    """添加DNS记录"""
    try:
        manager = _domain_manager(ctx, domain_name)
        record = RecordInput(type=record_type.upper(), name=name, content=content, ttl=ttl,
                             priority=priority, proxied=proxied)
        response = manager.create_dns_record(record)
        created = response.result
        click.echo(f"✅ 记录创建成功: {created.name} {created.type} {created.content} (ID: {created.id})")

    except DNSError as e:
        click.echo(f"❌ 创建DNS记录失败: {str(e)}", err=True)
        sys.exit(1)


@records.command('delete')
@click.argument('domain_name')
@click.argument('record_ids', nargs=-1, required=True)
@click.option('--ignore-missing', is_flag=True, help='记录不存在时视为成功')
@click.pass_context
def records_delete(ctx, domain_name, record_ids, ignore_missing):
    """删除一条或多条DNS记录"""
    try:
        manager = _domain_manager(ctx, domain_name)
        results = manager.batch_delete_dns_records(list(record_ids), ignore_missing=ignore_missing)

        failed = [item for item in results if not item.success]
        for item in results:
            if item.success:
                click.echo(f"✅ 已删除: {item.record_id}")
            else:
                click.echo(f"❌ 删除失败: {item.record_id} - {item.error}", err=True)
        if failed:
            sys.exit(1)

    except DNSError as e:
        click.echo(f"❌ 删除DNS记录失败: {str(e)}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('domain_name')
@click.option('--provider', type=PROVIDER_CHOICES, help='检查指定平台（默认使用域名当前平台）')
@click.pass_context
def check(ctx, domain_name, provider):
    """检查域名在DNS平台上是否可用"""
    try:
        config = ctx.obj['config']
        stored = _get_stored_domain(_get_database(ctx), domain_name)
        provider = provider or stored['dns_provider'] or CLOUDFLARE

        provider_config = build_stored_config(stored, provider=provider)
        if provider_config.missing_fields():
            # 存储中没有该平台的凭据时使用全局配置
            provider_config = config.build_provider_config(provider, domain_name=stored['domain_name'])

        manager = DNSManager.from_config(config)
        manager.register_provider(domain_name, provider_config, set_default=True)

        info = manager.get_domain_info()
        click.echo(f"✅ 域名 {info.name} 在 {provider} 上可用")
        click.echo(f"   状态: {info.status}")
        if info.name_servers:
            click.echo(f"   名称服务器: {', '.join(info.name_servers)}")
        if info.record_count is not None:
            click.echo(f"   记录数: {info.record_count}")

    except DNSError as e:
        click.echo(f"❌ 域名检查失败: {str(e)}", err=True)
        sys.exit(1)


@cli.command('config-check')
@click.option('--provider', 'providers', multiple=True, type=PROVIDER_CHOICES, help='需要检查凭据的平台')
@click.pass_context
def config_check(ctx, providers):
    """检查配置并显示配置摘要"""
    config = ctx.obj['config']

    click.echo("📋 当前配置:")
    for key, value in config.get_config_summary().items():
        click.echo(f"   {key}: {value}")

    errors = config.validate_config(providers)
    if errors:
        click.echo("\n⚠️  配置验证失败:", err=True)
        for error in errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)

    click.echo("\n✅ 配置验证通过")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
