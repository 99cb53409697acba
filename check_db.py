# check_db.py
import asyncio
import sys

import asyncpg

from payment_service.config import settings

MAX_RETRIES = 5
RETRY_DELAY = 2


async def check_db() -> bool:
    """Ждет, пока БД начнет принимать подключения (перед миграциями)."""
    for attempt in range(MAX_RETRIES):
        try:
            conn = await asyncpg.connect(
                host=settings.DB_HOST,
                port=settings.DB_PORT,
                user=settings.DB_USER,
                password=settings.DB_PASSWORD,
                database=settings.DB_NAME,
            )
            await conn.fetchval('SELECT 1')
            await conn.close()
            print(f'Попытка {attempt + 1}: Подключение к БД успешно')
            return True
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
            print(f'Попытка {attempt + 1}: Ошибка подключения к БД: {e}')
            if attempt < MAX_RETRIES - 1:
                await asyncio.sleep(RETRY_DELAY)
    return False


if __name__ == '__main__':
    success = asyncio.run(check_db())
    sys.exit(0 if success else 1)
