import asyncio

from classbook.db.init_db import create_tables

if __name__ == "__main__":
    asyncio.run(create_tables())
    print('Proceso de creación de tablas completado')
