"""
Модуль для сохранения снимков состояния клуба в SQLite

Рабочее состояние живёт в памяти; здесь только периодические снимки
аккаунта, ручных статусов ПК, журнала бронирований, регистраций
на турниры и остатков товаров. История покупок и запросы в чат
не сохраняются.
"""
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Optional

from config import settings
from database.models import Booking, TournamentRegistration
from database.repository import BookingLedger, ClubState
from services.errors import ShopItemNotFound, TournamentNotFound
from utils.time_utils import parse_instant

logger = logging.getLogger(__name__)


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """Получение подключения к БД"""
    conn = sqlite3.connect(db_path or settings.DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db(db_path: Optional[str] = None) -> Generator[sqlite3.Connection, None, None]:
    """Контекстный менеджер для работы с БД"""
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: Optional[str] = None):
    """Инициализация базы данных"""
    db_path = db_path or settings.DB_PATH

    # Создание директории для БД, если не существует
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # Аккаунт посетителя (одна строка)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS account (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                name TEXT NOT NULL,
                balance INTEGER NOT NULL,
                rating INTEGER NOT NULL,
                total_hours INTEGER NOT NULL
            )
        """)

        # Ручные статусы ПК
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS workstations (
                id INTEGER PRIMARY KEY,
                admin_status TEXT,
                last_used TIMESTAMP
            )
        """)

        # Таблица бронирований
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS bookings (
                id INTEGER PRIMARY KEY,
                pc_id INTEGER NOT NULL,
                pc_name TEXT,
                start_time TEXT,
                duration INTEGER NOT NULL,
                price INTEGER NOT NULL,
                created_at TIMESTAMP NOT NULL,
                completed INTEGER DEFAULT 0,
                completed_at TIMESTAMP
            )
        """)

        # Места в турнирах и регистрации
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tournaments (
                id INTEGER PRIMARY KEY,
                participants INTEGER NOT NULL,
                status TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tournament_registrations (
                id INTEGER PRIMARY KEY,
                tournament_id INTEGER NOT NULL,
                entry_fee INTEGER NOT NULL,
                created_at TIMESTAMP NOT NULL,
                status TEXT NOT NULL
            )
        """)

        # Остатки товаров магазина
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS shop_stock (
                id INTEGER PRIMARY KEY,
                stock INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_bookings_pc
            ON bookings(pc_id, completed)
        """)


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def save_snapshot(state: ClubState, db_path: Optional[str] = None):
    """Сохранение снимка состояния (полная перезапись)"""
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        account = state.account
        cursor.execute("""
            INSERT OR REPLACE INTO account (id, name, balance, rating, total_hours)
            VALUES (1, ?, ?, ?, ?)
        """, (account.name, account.balance, account.rating, account.total_hours))

        cursor.execute("DELETE FROM workstations")
        cursor.executemany("""
            INSERT INTO workstations (id, admin_status, last_used) VALUES (?, ?, ?)
        """, [
            (ws.id, ws.admin_status, _to_text(ws.last_used))
            for ws in state.registry.all()
        ])

        cursor.execute("DELETE FROM bookings")
        cursor.executemany("""
            INSERT INTO bookings
            (id, pc_id, pc_name, start_time, duration, price, created_at, completed, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            (
                b.id,
                b.pc_id,
                b.pc_name,
                # Некорректную дату сохраняем как есть
                _to_text(b.start_time) if b.start_time is not None else b.raw_start_time,
                b.duration,
                b.price,
                _to_text(b.created_at),
                int(b.completed),
                _to_text(b.completed_at)
            )
            for b in state.bookings.list()
        ])

        cursor.execute("DELETE FROM tournaments")
        cursor.executemany("""
            INSERT INTO tournaments (id, participants, status) VALUES (?, ?, ?)
        """, [(t.id, t.participants, t.status) for t in state.tournaments.all()])

        cursor.execute("DELETE FROM tournament_registrations")
        cursor.executemany("""
            INSERT INTO tournament_registrations (id, tournament_id, entry_fee, created_at, status)
            VALUES (?, ?, ?, ?, ?)
        """, [
            (r.id, r.tournament_id, r.entry_fee, _to_text(r.created_at), r.status)
            for r in state.tournaments.registrations
        ])

        cursor.execute("DELETE FROM shop_stock")
        cursor.executemany("""
            INSERT INTO shop_stock (id, stock) VALUES (?, ?)
        """, [(item.id, item.stock) for item in state.shop.all()])

    logger.info(f"Снимок состояния сохранён: {len(state.bookings)} броней")


def load_snapshot(state: ClubState, db_path: Optional[str] = None) -> bool:
    """
    Загрузка снимка в состояние клуба
    Возвращает False, если снимка ещё нет
    """
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM account WHERE id = 1")
        row = cursor.fetchone()
        if row is None:
            return False

        account = state.account
        account.name = row['name']
        account.balance = max(0, row['balance'])
        account.rating = row['rating']
        account.total_hours = row['total_hours']

        cursor.execute("SELECT * FROM workstations")
        for row in cursor.fetchall():
            if row['id'] not in state.registry:
                logger.warning(f"В снимке неизвестный ПК #{row['id']}, пропущен")
                continue
            workstation = state.registry.get(row['id'])
            workstation.admin_status = row['admin_status']
            workstation.last_used = parse_instant(row['last_used'])

        cursor.execute("SELECT * FROM bookings ORDER BY id")
        bookings = [_row_to_booking(row) for row in cursor.fetchall()]
        state.bookings = BookingLedger(bookings)

        cursor.execute("SELECT * FROM tournaments")
        for row in cursor.fetchall():
            try:
                tournament = state.tournaments.get(row['id'])
            except TournamentNotFound:
                logger.warning(f"В снимке неизвестный турнир #{row['id']}, пропущен")
                continue
            tournament.participants = row['participants']
            tournament.status = row['status']

        state.tournaments.registrations = []
        cursor.execute("SELECT * FROM tournament_registrations ORDER BY id")
        for row in cursor.fetchall():
            try:
                state.tournaments.add_registration(TournamentRegistration(
                    id=row['id'],
                    tournament_id=row['tournament_id'],
                    entry_fee=row['entry_fee'],
                    created_at=parse_instant(row['created_at']) or datetime.now(),
                    status=row['status']
                ))
            except TournamentNotFound:
                logger.warning(f"Регистрация #{row['id']} на неизвестный турнир, пропущена")

        cursor.execute("SELECT * FROM shop_stock")
        for row in cursor.fetchall():
            try:
                state.shop.get(row['id']).stock = row['stock']
            except ShopItemNotFound:
                logger.warning(f"В снимке неизвестный товар #{row['id']}, пропущен")

    logger.info(f"Снимок состояния загружен: {len(state.bookings)} броней")
    return True


def _row_to_booking(row) -> Booking:
    """Преобразование строки БД в объект Booking"""
    start_time = parse_instant(row['start_time'])
    return Booking(
        id=row['id'],
        pc_id=row['pc_id'],
        pc_name=row['pc_name'] or '',
        start_time=start_time,
        duration=row['duration'],
        price=row['price'],
        created_at=parse_instant(row['created_at']) or datetime.now(),
        completed=bool(row['completed']),
        completed_at=parse_instant(row['completed_at']),
        raw_start_time=row['start_time'] if start_time is None else None
    )
