import logging

import pymongo
from pymongo.errors import CollectionInvalid, OperationFailure, PyMongoError

from .cluster import event_listeners
from .loader import INDEX_FIELD

logger = logging.getLogger(__name__)

#AlreadyInitialized (already sharded), IndexOptionsConflict, IndexKeySpecsConflict
ALREADY_DONE_CODES = (23, 85, 86)


class SetupError(Exception):
    """Raised when the collection cannot be prepared for a run."""


def connect(config, tracker):
    return pymongo.MongoClient(
        config.connection_string,
        event_listeners=event_listeners(tracker),
        maxPoolSize=config.max_pool_size,
        retryWrites=True,
        retryReads=True,
    )


def get_collection(client, config):
    return client[config.database_name][config.collection_name]


def run_setup_step(description, step, *args, **kwargs):
    try:
        return step(*args, **kwargs)
    except OperationFailure as e:
        if e.code not in ALREADY_DONE_CODES:
            raise SetupError(f'{description} failed: {e}') from e
        logger.info(f'{description}: already applied ({e.code})')
    except PyMongoError as e:
        raise SetupError(f'{description} failed: {e}') from e


def prepare_collection(client, config):
    db = client[config.database_name]
    existing = run_setup_step('Listing collections', db.list_collection_names) or []
    if config.collection_name not in existing:
        print(f'Creating collection: {config.collection_name}')
        try:
            run_setup_step('Creating collection', db.create_collection, config.collection_name)
        except SetupError as e:
            if not isinstance(e.__cause__, CollectionInvalid):
                raise
            logger.info(f'Collection {config.collection_name} already exists')
    if config.sharded:
        shard_collection(client, config)


def shard_collection(client, config):
    namespace = f'{config.database_name}.{config.collection_name}'
    admin = client.admin
    run_setup_step('Enabling sharding', admin.command, 'enableSharding', config.database_name)
    run_setup_step('Sharding collection', admin.command, 'shardCollection', namespace,
                   key={INDEX_FIELD: 'hashed'})
    logger.info(f'Sharding setup completed for collection {namespace} with shard key: {INDEX_FIELD}')
