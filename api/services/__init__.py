# Copyright (c) 2024 RAG-KB Contributors
# SPDX-License-Identifier: MIT

"""Services layer for the retrieval daemon.

The control plane depends only on RetrievalServiceFacade; RetrievalService
is the default in-process implementation.
"""

from .indexing_queue import IndexingQueue, Priority
from .retrieval_facade import RetrievalServiceFacade
from .retrieval_service import RetrievalService

__all__ = ['IndexingQueue', 'Priority', 'RetrievalServiceFacade', 'RetrievalService']
