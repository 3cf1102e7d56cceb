SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied_at REAL NOT NULL
);

-- Accounts: balances are fixed-point decimal strings
CREATE TABLE IF NOT EXISTS accounts (
    account_id              TEXT PRIMARY KEY,
    api_key                 TEXT NOT NULL DEFAULT '',
    referral_code           TEXT NOT NULL UNIQUE,
    referred_by             TEXT,
    usdt_balance            TEXT NOT NULL DEFAULT '0.00' CHECK (CAST(usdt_balance AS NUMERIC) >= 0),
    gbtc_balance            TEXT NOT NULL DEFAULT '0.00000000' CHECK (CAST(gbtc_balance AS NUMERIC) >= 0),
    base_hash_power         TEXT NOT NULL DEFAULT '0.00',
    referral_hash_bonus     TEXT NOT NULL DEFAULT '0.00',
    hash_power              TEXT NOT NULL DEFAULT '0.00',
    total_referral_earnings TEXT NOT NULL DEFAULT '0.00',
    is_admin                INTEGER NOT NULL DEFAULT 0,
    is_frozen               INTEGER NOT NULL DEFAULT 0,
    is_banned               INTEGER NOT NULL DEFAULT 0,
    created_at              REAL NOT NULL,
    updated_at              REAL NOT NULL
);

-- Blocks: immutable, one per scheduler tick
CREATE TABLE IF NOT EXISTS blocks (
    height           INTEGER PRIMARY KEY,
    reward           TEXT NOT NULL,
    total_hash_power TEXT NOT NULL,
    participants     INTEGER NOT NULL DEFAULT 0,
    created_at       REAL NOT NULL
);

-- Unclaimed rewards: one per (account, block)
CREATE TABLE IF NOT EXISTS unclaimed_rewards (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id   TEXT NOT NULL,
    block_height INTEGER NOT NULL,
    reward       TEXT NOT NULL,
    tx_hash      TEXT NOT NULL,
    created_at   REAL NOT NULL,
    expires_at   REAL NOT NULL,
    claimed      INTEGER NOT NULL DEFAULT 0,
    claimed_at   REAL,
    UNIQUE (account_id, block_height),
    FOREIGN KEY (account_id) REFERENCES accounts(account_id),
    FOREIGN KEY (block_height) REFERENCES blocks(height)
);

-- Activity: gates reward eligibility
CREATE TABLE IF NOT EXISTS activity_records (
    account_id    TEXT PRIMARY KEY,
    last_claim_at REAL,
    activated_at  REAL NOT NULL,
    total_claims  INTEGER NOT NULL DEFAULT 0,
    missed_claims INTEGER NOT NULL DEFAULT 0,
    is_active     INTEGER NOT NULL DEFAULT 1,
    updated_at    REAL NOT NULL,
    FOREIGN KEY (account_id) REFERENCES accounts(account_id)
);

-- Ledger entries: deposit / withdrawal / transfer / stake requests
CREATE TABLE IF NOT EXISTS ledger_entries (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    kind            TEXT NOT NULL CHECK (kind IN ('deposit', 'withdrawal', 'transfer', 'stake')),
    account_id      TEXT NOT NULL,
    counterparty_id TEXT,
    currency        TEXT NOT NULL CHECK (currency IN ('USDT', 'GBTC')),
    amount          TEXT NOT NULL,
    fee             TEXT NOT NULL DEFAULT '0',
    network         TEXT NOT NULL DEFAULT '',
    tx_hash         TEXT,
    address         TEXT NOT NULL DEFAULT '',
    memo            TEXT NOT NULL DEFAULT '',
    status          TEXT NOT NULL CHECK (status IN ('pending', 'approved', 'rejected', 'completed')),
    note            TEXT NOT NULL DEFAULT '',
    created_at      REAL NOT NULL,
    updated_at      REAL NOT NULL,
    completed_at    REAL,
    FOREIGN KEY (account_id) REFERENCES accounts(account_id)
);

-- Stakes: locked balances earning a fixed daily reward
CREATE TABLE IF NOT EXISTS stakes (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id           INTEGER NOT NULL UNIQUE,
    account_id         TEXT NOT NULL,
    currency           TEXT NOT NULL,
    amount             TEXT NOT NULL,
    apr                TEXT NOT NULL,
    term_days          INTEGER NOT NULL,
    daily_reward       TEXT NOT NULL,
    total_rewards_paid TEXT NOT NULL DEFAULT '0',
    staked_at          REAL NOT NULL,
    unlock_at          REAL NOT NULL,
    last_reward_at     REAL,
    status             TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'completed')),
    FOREIGN KEY (entry_id) REFERENCES ledger_entries(id),
    FOREIGN KEY (account_id) REFERENCES accounts(account_id)
);

-- Transactions: audit trail for all balance changes
CREATE TABLE IF NOT EXISTS transactions (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id   TEXT NOT NULL,
    type         TEXT NOT NULL CHECK (type IN (
        'deposit', 'withdraw', 'withdraw_fee', 'withdraw_refund',
        'transfer_in', 'transfer_out', 'hash_purchase', 'referral_commission',
        'reward_claim', 'stake_lock', 'stake_reward', 'stake_release'
    )),
    currency     TEXT NOT NULL,
    amount       TEXT NOT NULL,
    reference_id TEXT NOT NULL DEFAULT '',
    created_at   REAL NOT NULL,
    FOREIGN KEY (account_id) REFERENCES accounts(account_id)
);

-- System settings: block reward, sweep watermark, transfer lock override
CREATE TABLE IF NOT EXISTS system_settings (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at REAL NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_accounts_api_key ON accounts(api_key);
CREATE INDEX IF NOT EXISTS idx_accounts_referred_by ON accounts(referred_by);
CREATE INDEX IF NOT EXISTS idx_rewards_account_live ON unclaimed_rewards(account_id, claimed, expires_at);
CREATE INDEX IF NOT EXISTS idx_rewards_expiry ON unclaimed_rewards(expires_at) WHERE claimed = 0;
CREATE INDEX IF NOT EXISTS idx_activity_active ON activity_records(is_active);
CREATE INDEX IF NOT EXISTS idx_entries_account ON ledger_entries(account_id, kind);
CREATE INDEX IF NOT EXISTS idx_entries_status ON ledger_entries(kind, status);
CREATE UNIQUE INDEX IF NOT EXISTS idx_entries_deposit_tx
    ON ledger_entries(tx_hash COLLATE NOCASE) WHERE kind = 'deposit';
CREATE INDEX IF NOT EXISTS idx_stakes_status ON stakes(status);
CREATE INDEX IF NOT EXISTS idx_transactions_account ON transactions(account_id);
"""
