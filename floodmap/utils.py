"""
Funkcje pomocnicze używane w całej aplikacji.
Zawiera: konfigurację logowania, operacje na datach.
"""

import logging
import os
from datetime import date, datetime, timedelta


def setup_logger(name, level=logging.INFO, log_dir='logs'):
    """
    Konfiguruje logger z handlerami dla konsoli i pliku.

    Args:
        name (str): Nazwa loggera (zwykle __name__ lub 'floodmap')
        level: Poziom logowania (default: INFO)
        log_dir (str): Katalog pliku logu

    Returns:
        logging.Logger: Skonfigurowany logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Unikaj duplikacji handlerów
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_dir, 'floodmap.log'))
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Logowanie tylko na konsolę, brak dostępu do {log_dir}: {e}")

    return logger


def format_date(value):
    """
    Formatuje datę jako YYYY-MM-DD.

    Args:
        value: date, datetime lub napis ISO

    Returns:
        str: Data w formacie YYYY-MM-DD
    """
    if isinstance(value, datetime):
        value = value.date()
    elif not isinstance(value, date):
        value = date.fromisoformat(str(value)[:10])
    return value.isoformat()


def add_days(value, days):
    """Dodaje dni do daty i zwraca wynik w formacie YYYY-MM-DD"""
    return format_date(date.fromisoformat(format_date(value)) + timedelta(days=days))


def describe_dates(first, last):
    """Opis zakresu dat serii, np. 'from 2023-06-30 to 2023-07-24'"""
    return f"from {format_date(first)} to {format_date(last)}"
