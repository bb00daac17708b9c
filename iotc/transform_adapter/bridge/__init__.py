#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Device Bridge client

Bridge = "southbound" side of the adapter (the device management API the
reshaped D2C messages are forwarded to)

  - base         (BridgeClient interface used by the request pipeline)
  - models       (MessageBody, the Bridge "send message" payload)
  - http_client  (httpx implementation, one shared connection pool)
"""
