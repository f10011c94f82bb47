"""Tests for the SQLite domain store."""

import sqlite3

import pytest

from dnsbridge.database import DomainDatabase


class TestDomains:
    def test_add_and_get(self, db, cf_config):
        """Test a stored domain keeps its provider and credentials."""
        domain_id = db.add_domain("Example.COM", "cloudflare", cf_config)

        stored = db.get_domain_by_id(domain_id)
        assert stored["domain_name"] == "example.com"
        assert stored["dns_provider"] == "cloudflare"
        assert stored["cf_zone_id"] == "zone123"
        assert stored["enable_dns"] == 1
        assert db.get_domain_by_name("example.com.")["id"] == domain_id

    def test_duplicate_domain(self, db):
        """Test adding the same domain twice raises IntegrityError."""
        db.add_domain("example.com")
        with pytest.raises(sqlite3.IntegrityError):
            db.add_domain("EXAMPLE.com")

    def test_missing_domain(self, db):
        """Test lookups of unknown domains return None."""
        assert db.get_domain_by_id(42) is None
        assert db.get_domain_by_name("missing.com") is None

    def test_list_and_filter(self, db):
        """Test listing with and without a provider filter."""
        db.add_domain("a.com", "cloudflare")
        db.add_domain("b.com", "aliyun")
        db.add_domain("c.com", "cloudflare", enable_dns=False)

        assert [item["domain_name"] for item in db.list_all_domains()] == ["a.com", "b.com", "c.com"]
        assert [item["domain_name"] for item in db.list_all_domains("aliyun")] == ["b.com"]
        assert [item["domain_name"] for item in db.get_domains_by_feature("enable_dns")] == ["a.com", "b.com"]

    def test_unknown_feature(self, db):
        """Test only known feature columns can be queried."""
        with pytest.raises(ValueError):
            db.get_domains_by_feature("enable_dns; DROP TABLE domains")

    def test_update_provider_keeps_other_credentials(self, db, cf_domain, aliyun_config):
        """Test switching provider keeps the previous provider's credentials."""
        db.update_domain_provider_config(cf_domain, "aliyun", aliyun_config)

        stored = db.get_domain_by_id(cf_domain)
        assert stored["dns_provider"] == "aliyun"
        assert stored["aliyun_access_key_secret"] == "aliyun-secret"
        assert stored["cf_api_key"] == "cf-global-key"


class TestMigrationHistory:
    def test_record_and_list(self, db, cf_domain):
        """Test migration results are stored with decoded errors."""
        db.record_migration(cf_domain, "cloudflare", "aliyun", {
            "success": False,
            "state": "failed",
            "total_records": 3,
            "migrated_records": 1,
            "failed_records": 1,
            "errors": ["www.example.com (A): 无效的IPv4地址"],
            "execution_time": 12,
        })

        [entry] = db.list_migrations(cf_domain)
        assert entry["success"] == 0
        assert entry["errors"] == ["www.example.com (A): 无效的IPv4地址"]
        assert entry["execution_time"] == 12
        assert db.list_migrations(cf_domain + 1) == []


class TestSchemaUpgrade:
    def test_old_database_gets_new_columns(self, tmp_path):
        """Test an older domains table is upgraded in place."""
        path = tmp_path / "old.db"
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE domains (id INTEGER PRIMARY KEY AUTOINCREMENT, domain_name TEXT UNIQUE NOT NULL,"
                     " cf_zone_id TEXT, cf_api_key TEXT, cf_email TEXT,"
                     " created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,"
                     " updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)")
        conn.execute("INSERT INTO domains (domain_name, cf_zone_id) VALUES ('legacy.com', 'z1')")
        conn.commit()
        conn.close()

        db = DomainDatabase(str(path))

        stored = db.get_domain_by_name("legacy.com")
        assert stored["dns_provider"] == "cloudflare"
        assert stored["aliyun_region"] == "cn-hangzhou"
        assert "aliyun_domain_name" in stored
        with sqlite3.connect(path) as conn:
            indexes = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")}
        assert "idx_enable_dns" in indexes

    def test_creates_parent_directory(self, tmp_path):
        """Test the database directory is created when missing."""
        path = tmp_path / "nested" / "dir" / "domains.db"
        DomainDatabase(str(path))
        assert path.exists()
