#!/usr/bin/env python3
"""
Commit example: in-process commit, then recovery after a simulated restart.
"""

import argparse

from txnsink.broker import TransactionBroker, register_cluster
from txnsink.committable import Committable
from txnsink.producer import InternalTransactionalProducer, ProducerPool
from txnsink.sink import CommitDriver, CommitRetryConfig, TransactionCommitter
from txnsink.utils.config import get_config
from txnsink.utils.logging import configure_logging


def main():
    parser = argparse.ArgumentParser(description='Transactional sink commit example')
    parser.add_argument('--config', default=None, help='YAML configuration file')
    parser.add_argument('--transactions', type=int, default=3, help='Transactions per phase')
    parser.add_argument('--log-format', default='console', help='json or console')
    args = parser.parse_args()

    config = get_config(args.config)
    configure_logging(
        log_level=config.get('logging.level', 'INFO'),
        log_format=args.log_format,
    )

    properties = config.producer_properties()
    broker = TransactionBroker(cluster_id='example')
    register_cluster(properties['bootstrap.servers'], broker)

    # Phase 1: producing and committing share the process
    pool = ProducerPool(lambda tid: InternalTransactionalProducer(properties, tid))
    committables = []
    for i in range(args.transactions):
        recyclable = pool.acquire(f'example-sink-{i}')
        producer = recyclable.get_object()
        producer.begin_transaction()
        producer.pre_commit()
        committables.append(Committable.of(recyclable))

    with TransactionCommitter(properties) as committer:
        pending = CommitDriver(committer).run(committables)
    print(f"In-process commit: {len(committables) - len(pending)} committed, {len(pending)} pending")

    # Phase 2: only the persisted transaction generations survive a restart
    persisted = []
    for i in range(args.transactions):
        producer = InternalTransactionalProducer(properties, f'example-recovered-{i}')
        producer.init_transactions()
        producer.begin_transaction()
        producer.pre_commit()
        persisted.append((producer.transactional_id, producer.producer_id, producer.epoch))

    recovered = [Committable.recovered(*generation) for generation in persisted]

    with TransactionCommitter(properties) as committer:
        driver = CommitDriver(committer, CommitRetryConfig(max_cycles=3))
        pending = driver.run(recovered)
    print(f"Recovery commit: {len(recovered) - len(pending)} committed, {len(pending)} pending")

    pool.close()
    print(f"Broker: {broker.get_stats()}")


if __name__ == '__main__':
    main()
