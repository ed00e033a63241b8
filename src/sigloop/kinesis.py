"""Kinesis stream operations built on the signing dispatcher.

Each operation marshals a JSON body, hands it to the dispatcher with the matching
``X-Amz-Target`` header and decodes the JSON reply. Errors from the dispatcher are
propagated untouched.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Union

from .dispatcher import AsyncDispatcher, Dispatcher
from .errors import SigloopError
from .regions import endpoint_for

API_VERSION = "Kinesis_20131202"

SHARD_ITERATOR_TYPES = (
    "AT_SEQUENCE_NUMBER",
    "AFTER_SEQUENCE_NUMBER",
    "TRIM_HORIZON",
    "LATEST",
)


def _decode(body: bytes) -> dict:
    if not body:
        return {}
    try:
        doc = json.loads(body)
    except ValueError as e:
        raise SigloopError(f"response is not valid JSON: {e}", "MalformedResponse") from e
    if not isinstance(doc, dict):
        raise SigloopError("response is not a JSON object", "MalformedResponse")
    return doc


def _without_none(payload: dict) -> dict:
    return {k: v for k, v in payload.items() if v is not None}


@dataclass
class HashKeyRange:
    starting_hash_key: str = ""
    ending_hash_key: str = ""


@dataclass
class SequenceNumberRange:
    starting_sequence_number: str = ""
    ending_sequence_number: Union[str, None] = None


@dataclass
class Record:
    data: bytes
    partition_key: str
    sequence_number: str


@dataclass
class GetRecordsResponse:
    # None once the shard has been closed and fully read
    next_shard_iterator: Union[str, None]
    records: list[Record] = field(default_factory=list)
    millis_behind_latest: Union[int, None] = None


@dataclass
class PutRecordResult:
    shard_id: str
    sequence_number: str


@dataclass
class Shard:
    shard_id: str
    hash_key_range: HashKeyRange = field(default_factory=HashKeyRange)
    sequence_number_range: SequenceNumberRange = field(default_factory=SequenceNumberRange)
    parent_shard_id: Union[str, None] = None
    adjacent_parent_shard_id: Union[str, None] = None
    stream: Union["Stream", None] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_json(cls, doc: dict, stream: Union["Stream", None] = None) -> "Shard":
        hkr = doc.get("HashKeyRange") or {}
        snr = doc.get("SequenceNumberRange") or {}
        return cls(
            shard_id=doc.get("ShardId", ""),
            hash_key_range=HashKeyRange(
                starting_hash_key=hkr.get("StartingHashKey", ""),
                ending_hash_key=hkr.get("EndingHashKey", ""),
            ),
            sequence_number_range=SequenceNumberRange(
                starting_sequence_number=snr.get("StartingSequenceNumber", ""),
                ending_sequence_number=snr.get("EndingSequenceNumber"),
            ),
            parent_shard_id=doc.get("ParentShardId"),
            adjacent_parent_shard_id=doc.get("AdjacentParentShardId"),
            stream=stream,
        )

    def get_shard_iterator(
        self, iterator_type: str, starting_sequence_number: Union[str, None] = None
    ) -> str:
        """Return an iterator for this shard.

        iterator_type is one of AT_SEQUENCE_NUMBER, AFTER_SEQUENCE_NUMBER, TRIM_HORIZON
        or LATEST; the first two need starting_sequence_number.
        """
        if self.stream is None:
            raise ValueError("shard is not attached to a stream")
        if iterator_type not in SHARD_ITERATOR_TYPES:
            raise ValueError(f"unknown shard iterator type {iterator_type!r}")
        doc = self.stream.service._call(
            "GetShardIterator",
            _without_none(
                {
                    "ShardId": self.shard_id,
                    "ShardIteratorType": iterator_type,
                    "StartingSequenceNumber": starting_sequence_number,
                    "StreamName": self.stream.name,
                }
            ),
        )
        return doc.get("ShardIterator", "")


@dataclass
class StreamDescription:
    stream_name: str
    stream_arn: str = ""
    stream_status: str = ""
    has_more_shards: bool = False
    shards: list[Shard] = field(default_factory=list)


class Stream:
    def __init__(self, name: str, service: "KinesisService"):
        self.name = name
        self.service = service

    def __repr__(self):
        return f"Stream(name={self.name!r}, endpoint={self.service.endpoint!r})"

    def put_record(self, partition_key: str, data: bytes) -> PutRecordResult:
        """Put one record on the stream; data is base64 encoded for the wire."""
        doc = self.service._call(
            "PutRecord",
            {
                "StreamName": self.name,
                "Data": base64.b64encode(data).decode("ascii"),
                "PartitionKey": partition_key,
            },
        )
        return PutRecordResult(
            shard_id=doc.get("ShardId", ""), sequence_number=doc.get("SequenceNumber", "")
        )

    def delete(self) -> None:
        self.service._call("DeleteStream", {"StreamName": self.name}, decode=False)

    def describe(
        self,
        exclusive_start_shard_id: Union[str, None] = None,
        limit: Union[int, None] = None,
    ) -> StreamDescription:
        doc = self.service._call(
            "DescribeStream",
            _without_none(
                {
                    "StreamName": self.name,
                    "ExclusiveStartShardId": exclusive_start_shard_id,
                    "Limit": limit,
                }
            ),
        )
        desc = doc.get("StreamDescription") or {}
        return StreamDescription(
            stream_name=desc.get("StreamName", self.name),
            stream_arn=desc.get("StreamARN", ""),
            stream_status=desc.get("StreamStatus", ""),
            has_more_shards=bool(desc.get("HasMoreShards", False)),
            shards=[Shard.from_json(s, self) for s in desc.get("Shards") or []],
        )

    def get_records(self, shard_iterator: str, limit: Union[int, None] = None) -> GetRecordsResponse:
        doc = self.service._call(
            "GetRecords",
            _without_none({"ShardIterator": shard_iterator, "Limit": limit}),
        )
        records = []
        for r in doc.get("Records") or []:
            try:
                data = base64.b64decode(r.get("Data", ""), validate=True)
            except (binascii.Error, ValueError) as e:
                raise SigloopError(
                    f"record {r.get('SequenceNumber')!r} has invalid base64 data",
                    "MalformedResponse",
                ) from e
            records.append(
                Record(
                    data=data,
                    partition_key=r.get("PartitionKey", ""),
                    sequence_number=r.get("SequenceNumber", ""),
                )
            )
        return GetRecordsResponse(
            next_shard_iterator=doc.get("NextShardIterator"),
            records=records,
            millis_behind_latest=doc.get("MillisBehindLatest"),
        )


class KinesisService:
    """Entry point for Kinesis calls against one endpoint.

    endpoint defaults to the Kinesis endpoint of region (see regions.endpoint_for).
    Calls are blocking, so dispatcher must be a sync Dispatcher.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        endpoint: Union[str, None] = None,
        region: Union[str, None] = None,
    ):
        if isinstance(dispatcher, AsyncDispatcher):
            raise TypeError("KinesisService needs a sync Dispatcher, not an AsyncDispatcher")
        self.dispatcher = dispatcher
        self.endpoint = endpoint or endpoint_for("kinesis", region)

    def _call(self, operation: str, payload: dict, decode: bool = True) -> dict:
        body = self.dispatcher.post_json(self.endpoint, f"{API_VERSION}.{operation}", payload)
        # CreateStream and DeleteStream reply with an empty document
        return _decode(body) if decode else {}

    def stream(self, name: str) -> Stream:
        return Stream(name, self)

    def create_stream(self, name: str, shard_count: int) -> Stream:
        self._call("CreateStream", {"StreamName": name, "ShardCount": shard_count}, decode=False)
        return Stream(name, self)
